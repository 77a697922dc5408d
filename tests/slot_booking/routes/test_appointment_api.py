from datetime import datetime, timedelta, timezone

import pytest
from fastapi import BackgroundTasks, HTTPException
from pydantic import ValidationError

from slot_booking.models.appointment import Appointment
from slot_booking.notifications.follow_up import run_booking_follow_up
from slot_booking.routes.appointment_routes import (
    CreateAppointmentRequest,
    RemindersUpdate,
    UpdateAppointmentRequest,
    create_appointment,
    delete_appointment,
    list_appointments,
    retry_follow_up,
    update_appointment,
)


def utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2031, 1, 15, hour, minute, tzinfo=timezone.utc)


def request(start: datetime, **overrides) -> CreateAppointmentRequest:
    values = {
        'start_time_utc': start,
        'client_email': 'client@example.com',
        'client_timezone': 'Europe/London',
    }
    values.update(overrides)
    return CreateAppointmentRequest(**values)


def book(db, start: datetime, **overrides):
    return create_appointment(request(start, **overrides), BackgroundTasks(), db=db)


def test_create_request_normalizes_fields() -> None:
    data = CreateAppointmentRequest(
        start_time_utc=datetime(2031, 1, 15, 9, 0, tzinfo=timezone(timedelta(hours=-5))),
        client_email=' CLIENT@Example.COM ',
        client_timezone=' Asia/Tokyo ',
        appointment_title='   ',
        description='  Bring notes  ',
    )

    assert data.start_time_utc == utc(14, 0)
    assert data.client_email == 'client@example.com'
    assert data.client_timezone == 'Asia/Tokyo'
    assert data.appointment_title == 'Appointment'
    assert data.description == 'Bring notes'


def test_create_request_treats_naive_start_as_utc() -> None:
    assert request(datetime(2031, 1, 15, 14, 0)).start_time_utc == utc(14, 0)


@pytest.mark.parametrize(
    'overrides',
    [
        {'client_email': 'not-an-email'},
        {'client_timezone': 'Mars/Base'},
        {'appointment_title': 'x' * 201},
        {'description': 'x' * 2001},
    ],
)
def test_create_request_rejects_invalid_fields(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        request(utc(14, 0), **overrides)


def test_create_appointment_returns_booking_and_queues_follow_up(configured_db, database_ready) -> None:
    background_tasks = BackgroundTasks()

    response = create_appointment(request(utc(14, 30), appointment_title='Intro call'), background_tasks, db=configured_db)

    assert response.start_time_utc == utc(14, 30)
    assert response.end_time_utc == utc(14, 50)
    assert response.status == 'scheduled'
    assert response.appointment_title == 'Intro call'
    assert response.client_timezone == 'Europe/London'
    assert response.reminders_sent.confirmation is False
    assert len(background_tasks.tasks) == 1
    assert background_tasks.tasks[0].func is run_booking_follow_up
    assert background_tasks.tasks[0].args == (response.id,)


def test_misaligned_start_returns_next_available_slot(configured_db, database_ready) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book(configured_db, utc(14, 15))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == {
        'error_kind': 'invalid_slot_alignment',
        'message': exception_info.value.detail['message'],
        'next_available_slot': '2031-01-15T14:30:00+00:00',
    }


def test_start_outside_working_hours_is_rejected(configured_db, database_ready) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book(configured_db, utc(22, 0))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['error_kind'] == 'outside_working_hours'


def test_past_start_is_rejected(configured_db, database_ready) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book(configured_db, datetime(2020, 1, 15, 14, 0, tzinfo=timezone.utc))

    assert exception_info.value.detail['error_kind'] == 'past_appointment'


def test_double_booking_returns_conflict(configured_db, database_ready) -> None:
    book(configured_db, utc(15, 0))

    with pytest.raises(HTTPException) as exception_info:
        book(configured_db, utc(15, 0), client_email='other@example.com')

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['error_kind'] == 'slot_already_booked'


def test_booking_without_configuration_returns_not_found(db, database_ready) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book(db, utc(14, 0))

    assert exception_info.value.status_code == 404


def test_list_appointments_orders_by_start(configured_db, database_ready) -> None:
    book(configured_db, utc(16, 0))
    book(configured_db, utc(14, 0))

    starts = [appointment.start_time_utc for appointment in list_appointments(db=configured_db)]

    assert starts == [utc(14, 0), utc(16, 0)]


def test_cancelling_frees_slot_for_new_booking(configured_db, database_ready) -> None:
    booked = book(configured_db, utc(14, 0))

    updated = update_appointment(booked.id, UpdateAppointmentRequest(status='cancelled'), db=configured_db)

    assert updated.status == 'cancelled'
    assert book(configured_db, utc(14, 0), client_email='other@example.com').status == 'scheduled'


def test_reactivating_into_a_taken_slot_returns_conflict(configured_db, database_ready) -> None:
    booked = book(configured_db, utc(14, 0))
    update_appointment(booked.id, UpdateAppointmentRequest(status='cancelled'), db=configured_db)
    book(configured_db, utc(14, 0), client_email='other@example.com')

    with pytest.raises(HTTPException) as exception_info:
        update_appointment(booked.id, UpdateAppointmentRequest(status='scheduled'), db=configured_db)

    assert exception_info.value.status_code == 409


def test_update_sets_reminder_flags(configured_db, database_ready) -> None:
    booked = book(configured_db, utc(14, 0))

    updated = update_appointment(
        booked.id,
        UpdateAppointmentRequest(reminders_sent=RemindersUpdate(one_hour_before=True)),
        db=configured_db,
    )

    assert updated.reminders_sent.one_hour_before is True
    assert updated.reminders_sent.confirmation is False


def test_update_rejects_unknown_status() -> None:
    with pytest.raises(ValidationError):
        UpdateAppointmentRequest(status='pending')


def test_update_missing_appointment_returns_not_found(configured_db, database_ready) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_appointment(404, UpdateAppointmentRequest(status='cancelled'), db=configured_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found'


def test_delete_removes_appointment(configured_db, database_ready) -> None:
    booked = book(configured_db, utc(14, 0))

    delete_appointment(booked.id, db=configured_db)

    assert configured_db.query(Appointment).count() == 0
    with pytest.raises(HTTPException) as exception_info:
        delete_appointment(booked.id, db=configured_db)
    assert exception_info.value.status_code == 404


def test_retry_follow_up_queues_only_unfinished_work(configured_db, database_ready) -> None:
    booked = book(configured_db, utc(14, 0))
    background_tasks = BackgroundTasks()

    pending = retry_follow_up(booked.id, background_tasks, db=configured_db)

    assert pending.queued is True
    assert len(background_tasks.tasks) == 1

    appointment = configured_db.get(Appointment, booked.id)
    appointment.meeting_link = 'https://meet.google.com/abc'
    appointment.reminder_confirmation_sent = True
    configured_db.commit()

    done = retry_follow_up(booked.id, BackgroundTasks(), db=configured_db)

    assert done.queued is False
