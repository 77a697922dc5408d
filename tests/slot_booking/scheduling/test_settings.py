import pytest

from slot_booking.scheduling.errors import ErrorKind, SchedulingError
from slot_booking.scheduling.settings import AvailabilitySettings


def _settings(**overrides) -> AvailabilitySettings:
    values = {
        'start_time': '09:00',
        'end_time': '17:00',
        'timezone': 'America/New_York',
        'slot_duration': 20,
        'buffer_between_slots': 10,
    }
    values.update(overrides)
    return AvailabilitySettings(**values)


def test_valid_settings_pass_validation() -> None:
    settings = _settings().validate()

    assert settings.step_minutes == 30
    assert settings.describe_hours() == '09:00 to 17:00 America/New_York'


@pytest.mark.parametrize(
    ('overrides', 'kind'),
    [
        ({'end_time': '09:00'}, ErrorKind.INVALID_CONFIG),
        ({'end_time': '08:00'}, ErrorKind.INVALID_CONFIG),
        ({'slot_duration': 0}, ErrorKind.INVALID_CONFIG),
        ({'slot_duration': -5}, ErrorKind.INVALID_CONFIG),
        ({'buffer_between_slots': -1}, ErrorKind.INVALID_CONFIG),
        ({'slot_duration': 24 * 60 + 1}, ErrorKind.INVALID_CONFIG),
        ({'slot_duration': 10**16}, ErrorKind.INVALID_CONFIG),
        ({'buffer_between_slots': 10**16}, ErrorKind.INVALID_CONFIG),
        ({'start_time': '9am'}, ErrorKind.INVALID_TIME_FORMAT),
        ({'end_time': '25:00'}, ErrorKind.INVALID_TIME_FORMAT),
        ({'timezone': 'Nowhere/Special'}, ErrorKind.INVALID_TIMEZONE),
    ],
)
def test_invalid_settings_are_rejected_with_specific_kind(overrides: dict, kind: ErrorKind) -> None:
    with pytest.raises(SchedulingError) as exception_info:
        _settings(**overrides).validate()

    assert exception_info.value.kind == kind


def test_zero_buffer_is_allowed() -> None:
    assert _settings(buffer_between_slots=0).validate().step_minutes == 20


def test_with_updates_merges_and_revalidates() -> None:
    updated = _settings().validate().with_updates(end_time='18:00', slot_duration=45)

    assert updated.end_time == '18:00'
    assert updated.slot_duration == 45
    assert updated.start_time == '09:00'


def test_with_updates_checks_time_order_against_existing_values() -> None:
    # Only one bound changes, yet the merged hours would be inverted.
    with pytest.raises(SchedulingError) as exception_info:
        _settings().validate().with_updates(start_time='18:00')

    assert exception_info.value.kind == ErrorKind.INVALID_CONFIG


def test_with_updates_ignores_none_values() -> None:
    settings = _settings().validate()

    assert settings.with_updates(timezone=None) == settings


def test_with_updates_rejects_unknown_fields() -> None:
    with pytest.raises(SchedulingError) as exception_info:
        _settings().validate().with_updates(days=['mon'])

    assert exception_info.value.kind == ErrorKind.INVALID_CONFIG


def test_full_day_duration_and_buffer_are_allowed() -> None:
    settings = _settings(slot_duration=24 * 60, buffer_between_slots=24 * 60).validate()

    assert settings.step_minutes == 2 * 24 * 60
