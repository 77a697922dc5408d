"""
Conference link providers.

The booking follow-up asks a provider for a video-call link once the
appointment is committed. Providers raise ``MeetingLinkError`` when no link
could be produced.
"""

import logging
from abc import ABC, abstractmethod
from uuid import uuid4

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from slot_booking.core import config
from slot_booking.scheduling.timemath import ensure_utc

logger = logging.getLogger(__name__)

LINK_NOT_CREATED = 'Link not created'
SCOPES = [
    'https://www.googleapis.com/auth/calendar.events',
    'https://www.googleapis.com/auth/calendar',
]


class MeetingLinkError(Exception):
    pass


class MeetingLinkProvider(ABC):

    @abstractmethod
    def create_meeting(self, appointment) -> str:
        """Create a conference for ``appointment`` and return its join URL."""


class NoMeetingProvider(MeetingLinkProvider):
    """Used when conferencing is switched off; every booking gets the placeholder."""

    def create_meeting(self, appointment) -> str:
        return LINK_NOT_CREATED


class GoogleMeetProvider(MeetingLinkProvider):

    def __init__(self, service=None):
        self._service = service

    @property
    def service(self):
        if self._service is None:
            self._service = self._authorize()
        return self._service

    @staticmethod
    def _authorize():
        missing = [
            name for name, value in (
                ('GOOGLE_CLIENT_ID', config.GOOGLE_CLIENT_ID),
                ('GOOGLE_CLIENT_SECRET', config.GOOGLE_CLIENT_SECRET),
                ('GOOGLE_REFRESH_TOKEN', config.GOOGLE_REFRESH_TOKEN),
            )
            if not value
        ]
        if missing:
            raise MeetingLinkError(f'Missing required environment variables: {", ".join(missing)}')

        creds = Credentials(
            token=None,
            refresh_token=config.GOOGLE_REFRESH_TOKEN,
            client_id=config.GOOGLE_CLIENT_ID,
            client_secret=config.GOOGLE_CLIENT_SECRET,
            token_uri=config.GOOGLE_TOKEN_URI,
            scopes=SCOPES,
        )
        http = AuthorizedHttp(creds, http=httplib2.Http(timeout=config.FOLLOW_UP_TIMEOUT_SECONDS))
        return build('calendar', 'v3', http=http, cache_discovery=False)

    @staticmethod
    def build_event(appointment) -> dict:
        event = {
            'summary': appointment.appointment_title,
            'description': appointment.description or 'Scheduled Meeting',
            'start': {'dateTime': ensure_utc(appointment.start_time_utc).isoformat(), 'timeZone': 'UTC'},
            'end': {'dateTime': ensure_utc(appointment.end_time_utc).isoformat(), 'timeZone': 'UTC'},
            'attendees': [{'email': appointment.client_email}] if appointment.client_email else [],
            'conferenceData': {
                'createRequest': {
                    'requestId': uuid4().hex,
                    'conferenceSolutionKey': {'type': 'hangoutsMeet'},
                }
            },
            'guestsCanInviteOthers': False,
            'guestsCanModify': False,
        }
        return event

    @staticmethod
    def extract_link(event: dict) -> str:
        entry_points = (event.get('conferenceData') or {}).get('entryPoints') or []
        for entry_point in entry_points:
            if entry_point.get('entryPointType') == 'video' and entry_point.get('uri'):
                return entry_point['uri']
        return event.get('hangoutLink') or ''

    def create_meeting(self, appointment) -> str:
        try:
            event = self.service.events().insert(
                calendarId=config.GOOGLE_CALENDAR_ID,
                body=self.build_event(appointment),
                conferenceDataVersion=1,
                sendUpdates='all' if appointment.client_email else 'none',
            ).execute()

            link = self.extract_link(event)
            if not link and event.get('id'):
                # Conference creation can still be pending right after insert.
                event = self.service.events().get(
                    calendarId=config.GOOGLE_CALENDAR_ID,
                    eventId=event['id'],
                ).execute()
                link = self.extract_link(event)
        except HttpError as exc:
            raise MeetingLinkError(f'Calendar API rejected the event: {exc}') from exc

        if not link:
            raise MeetingLinkError('Google Meet link was not generated')

        logger.info('Google Meet link created for appointment %s', appointment.id)
        return link


def get_provider(name: str | None = None) -> MeetingLinkProvider:
    provider = (name or config.MEETING_PROVIDER).strip().lower()
    if provider == 'google_meet':
        return GoogleMeetProvider()
    if provider == 'none':
        return NoMeetingProvider()
    raise ValueError(f'Unsupported provider: {provider}')
