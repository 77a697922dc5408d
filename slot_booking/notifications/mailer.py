import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from slot_booking.core import config
from slot_booking.notifications.meet import LINK_NOT_CREATED
from slot_booking.scheduling.errors import SchedulingError
from slot_booking.scheduling.timemath import ensure_utc, resolve_timezone

logger = logging.getLogger(__name__)


def _client_zone(appointment):
    try:
        return resolve_timezone(appointment.client_timezone)
    except SchedulingError:
        return resolve_timezone('UTC')


def has_valid_link(meeting_link: str | None) -> bool:
    return bool(meeting_link) and meeting_link != LINK_NOT_CREATED and meeting_link.startswith('http')


def describe_schedule(appointment) -> dict:
    """Date and times of ``appointment`` rendered in the client's own timezone."""
    zone = _client_zone(appointment)
    start = ensure_utc(appointment.start_time_utc).astimezone(zone)
    end = ensure_utc(appointment.end_time_utc).astimezone(zone)
    return {
        'date': start.strftime('%A, %d %B %Y'),
        'start': start.strftime('%I:%M %p %Z'),
        'end': end.strftime('%I:%M %p %Z'),
    }


def _create_message(to: str, subject: str, plain_body: str, html_body: str) -> MIMEMultipart:
    message = MIMEMultipart('alternative')
    message['To'] = to
    message['From'] = formataddr((config.EMAIL_SENDER_NAME, config.EMAIL_USER))
    message['Subject'] = subject
    message.attach(MIMEText(plain_body, 'plain'))
    message.attach(MIMEText(html_body, 'html'))
    return message


def build_confirmation_message(appointment) -> MIMEMultipart:
    schedule = describe_schedule(appointment)
    if has_valid_link(appointment.meeting_link):
        link_line = f'Meet link: {appointment.meeting_link}'
        link_html = f'<p><strong>Meet link:</strong> <a href="{appointment.meeting_link}">Join meeting</a></p>'
    else:
        link_line = 'The meeting link could not be created. We will contact you with further details shortly.'
        link_html = f'<p>{link_line}</p>'

    plain_body = (
        'Hello,\n\n'
        'Your appointment has been successfully scheduled.\n\n'
        f'Date: {schedule["date"]}\n'
        f'Start time: {schedule["start"]}\n'
        f'End time: {schedule["end"]}\n'
        f'{link_line}\n\n'
        f'Best regards,\n{config.EMAIL_SENDER_NAME}\n'
    )
    html_body = (
        f'<h2>{appointment.appointment_title}</h2>'
        '<p>Your appointment has been <strong>successfully scheduled</strong>.</p>'
        f'<p><strong>Date:</strong> {schedule["date"]}</p>'
        f'<p><strong>Start time:</strong> {schedule["start"]}</p>'
        f'<p><strong>End time:</strong> {schedule["end"]}</p>'
        f'{link_html}'
        f'<p>Best regards,<br/>{config.EMAIL_SENDER_NAME}</p>'
    )
    return _create_message(appointment.client_email, 'Appointment Confirmation', plain_body, html_body)


def build_reminder_message(appointment) -> MIMEMultipart:
    schedule = describe_schedule(appointment)
    link_line = appointment.meeting_link if has_valid_link(appointment.meeting_link) else 'to be confirmed'
    plain_body = (
        'Hello,\n\n'
        f'This is a reminder that "{appointment.appointment_title}" starts at {schedule["start"]} '
        f'on {schedule["date"]}.\n'
        f'Meet link: {link_line}\n'
    )
    html_body = (
        f'<p>This is a reminder that <strong>{appointment.appointment_title}</strong> starts at '
        f'{schedule["start"]} on {schedule["date"]}.</p>'
        f'<p><strong>Meet link:</strong> {link_line}</p>'
    )
    return _create_message(appointment.client_email, 'Appointment Reminder', plain_body, html_body)


def send_email(message: MIMEMultipart) -> None:
    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.FOLLOW_UP_TIMEOUT_SECONDS) as smtp:
        if config.SMTP_USE_TLS:
            smtp.starttls()
        if config.EMAIL_USER:
            smtp.login(config.EMAIL_USER, config.EMAIL_PASS)
        smtp.send_message(message)
    logger.info('Sent "%s" email to %s', message['Subject'], message['To'])
