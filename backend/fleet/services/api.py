"""
HTTP client for the remote ELD REST API.

Every call goes through ``ApiClient.request``, which attaches the bearer token
held by the session and recovers from an expired access token at most once
per request. Login and register go through ``auth_request`` and never touch
the refresh flow: a 401 there means bad credentials.
"""

import enum
import logging
import threading

import requests
from requests import RequestException, Timeout
from django.conf import settings

from ..exceptions import (
    AuthenticationError, FleetError, NetworkError, SchemaError, ServerError, SessionExpired,
)
from ..serializers import (
    CarrierSerializer, DutyStatusSerializer, ELDLogSerializer, RouteResponseSerializer,
    TokenPairSerializer, TripSerializer, UserInfoSerializer, VehicleSerializer, parse_payload,
)

logger = logging.getLogger(__name__)

LOGIN_PATH = '/auth/login/'
REGISTER_PATH = '/auth/register/'
REFRESH_PATH = '/auth/refresh/'
USER_INFO_PATH = '/user-info/'

HEADERS = {
    'User-Agent': 'roadlog/1.0',
    'Accept': 'application/json',
}


class AuthState(enum.Enum):
    AUTHENTICATED = 'authenticated'
    REFRESHING = 'refreshing'
    EXPIRED = 'expired'


def error_message(resp, fallback: str) -> str:
    """The server's ``error``/``detail`` message, or ``fallback``."""
    try:
        payload = resp.json()
    except ValueError:
        return fallback
    if not isinstance(payload, dict):
        return fallback
    message = payload.get('error') or payload.get('detail') or payload.get('message')
    if not message:
        return fallback
    if isinstance(message, dict):
        return '; '.join(
            f"{key}: {' '.join(map(str, val)) if isinstance(val, list) else val}"
            for key, val in message.items()
        )
    if isinstance(message, list):
        return ' '.join(map(str, message))
    return str(message)


class ApiClient:
    def __init__(self, session, base_url: str = None, http=None, timeout: float = None):
        self.session = session
        self.base_url = (base_url or settings.ELD_API_BASE_URL).rstrip('/')
        self.prefix = settings.ELD_API_PREFIX.rstrip('/')
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout or settings.ELD_API_TIMEOUT_SECONDS
        self._cond = threading.Condition()
        self._state = AuthState.AUTHENTICATED if session.access_token else AuthState.EXPIRED

    @property
    def state(self) -> AuthState:
        return self._state

    def url(self, path: str) -> str:
        return f'{self.base_url}{self.prefix}{path}'

    def close(self) -> None:
        self.http.close()

    # ── Auth state machine ────────────────────────────────────

    def mark_authenticated(self) -> None:
        with self._cond:
            self._state = AuthState.AUTHENTICATED
            self._cond.notify_all()

    def mark_expired(self) -> None:
        with self._cond:
            self._state = AuthState.EXPIRED
            self._cond.notify_all()

    def _usable_token(self):
        with self._cond:
            while self._state is AuthState.REFRESHING:
                self._cond.wait()
            if self._state is AuthState.EXPIRED:
                raise SessionExpired()
            return self.session.access_token

    def _recover(self, used_token):
        """
        Get a token to retry with after a 401. Only one caller refreshes;
        concurrent callers wait for it and reuse the new token.
        """
        with self._cond:
            while self._state is AuthState.REFRESHING:
                self._cond.wait()
            if self._state is AuthState.EXPIRED:
                raise SessionExpired()

            current = self.session.access_token
            if current and current != used_token:
                return current

            refresh_token = self.session.refresh_token
            if not refresh_token:
                self._state = AuthState.EXPIRED
                self._cond.notify_all()
                refresh_token = None
            else:
                self._state = AuthState.REFRESHING

        if refresh_token is None:
            logger.info('Access token rejected and no refresh token stored; session expired.')
            self.session.expire()
            raise SessionExpired()

        tokens = None
        try:
            logger.info('Access token rejected; refreshing.')
            tokens = self.refresh(refresh_token)
        except FleetError as exc:
            logger.warning('Token refresh failed: %s', exc.message)
            raise SessionExpired() from exc
        finally:
            self._finish_refresh(tokens)
        return tokens.access

    def _finish_refresh(self, tokens) -> None:
        with self._cond:
            if tokens is not None:
                self.session.set_access_token(tokens.access, refresh=tokens.refresh)
                self._state = AuthState.AUTHENTICATED
            else:
                self._state = AuthState.EXPIRED
            self._cond.notify_all()
        if tokens is None:
            self.session.expire()

    def _expire(self) -> None:
        self.mark_expired()
        self.session.expire()

    # ── Transport ─────────────────────────────────────────────

    def _send(self, method: str, path: str, data=None, params=None, token: str = None):
        headers = dict(HEADERS)
        if token:
            headers['Authorization'] = f'Bearer {token}'
        try:
            return self.http.request(
                method,
                self.url(path),
                json=data,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except Timeout as exc:
            logger.warning('%s %s timed out', method, path)
            raise NetworkError('The ELD service timed out. Please retry in a moment.') from exc
        except RequestException as exc:
            logger.warning('%s %s failed: %s', method, path, exc)
            raise NetworkError() from exc

    @staticmethod
    def _decode(resp, fallback: str = None):
        if resp.status_code >= 400:
            message = error_message(resp, fallback or ServerError.default_message)
            raise ServerError(resp.status_code, message)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise SchemaError('The ELD service returned a non-JSON response.') from exc

    def request(self, method: str, path: str, data=None, params=None):
        """Authenticated call; retried once with a fresh token on 401."""
        token = self._usable_token()
        resp = self._send(method, path, data, params, token)
        if resp.status_code == 401:
            token = self._recover(token)
            resp = self._send(method, path, data, params, token)
            if resp.status_code == 401:
                logger.warning('%s %s still unauthorized after refresh; session expired.', method, path)
                self._expire()
                raise SessionExpired()
        return self._decode(resp)

    def auth_request(self, path: str, data: dict, fallback: str):
        resp = self._send('POST', path, data)
        if resp.status_code in (400, 401, 403):
            raise AuthenticationError(error_message(resp, fallback))
        return self._decode(resp, fallback)

    # ── Auth endpoints ────────────────────────────────────────

    def login(self, username: str, password: str):
        payload = self.auth_request(
            LOGIN_PATH, {'username': username, 'password': password}, 'Login failed',
        )
        return parse_payload(TokenPairSerializer, payload)

    def register(self, fields: dict):
        payload = self.auth_request(REGISTER_PATH, fields, 'Registration failed')
        return parse_payload(TokenPairSerializer, payload)

    def refresh(self, refresh_token: str):
        resp = self._send('POST', REFRESH_PATH, {'refresh': refresh_token})
        return parse_payload(TokenPairSerializer, self._decode(resp))

    def user_info(self):
        return parse_payload(UserInfoSerializer, self.request('GET', USER_INFO_PATH))

    # ── Trips ─────────────────────────────────────────────────

    def list_trips(self, params: dict = None):
        params = {k: v for k, v in (params or {}).items() if v is not None}
        return parse_payload(TripSerializer, self.request('GET', '/trips/', params=params or None), many=True)

    def get_trip(self, trip_id: int):
        return parse_payload(TripSerializer, self.request('GET', f'/trips/{trip_id}/'))

    def create_trip(self, data: dict):
        return parse_payload(TripSerializer, self.request('POST', '/trips/', data))

    def update_trip(self, trip_id: int, data: dict):
        return parse_payload(TripSerializer, self.request('PATCH', f'/trips/{trip_id}/', data))

    def delete_trip(self, trip_id: int) -> None:
        self.request('DELETE', f'/trips/{trip_id}/')

    def calculate_route(self, trip_id: int):
        return parse_payload(RouteResponseSerializer, self.request('POST', f'/trips/{trip_id}/route/'))

    # ── Duty statuses ─────────────────────────────────────────

    def list_duty_statuses(self, trip_id: int):
        payload = self.request('GET', f'/trips/{trip_id}/duty-status/')
        return parse_payload(DutyStatusSerializer, payload, many=True)

    def create_duty_status(self, trip_id: int, data: dict):
        payload = self.request('POST', f'/trips/{trip_id}/duty-status/', data)
        return parse_payload(DutyStatusSerializer, payload)

    # ── ELD logs ──────────────────────────────────────────────

    def list_eld_logs(self, trip_id: int):
        payload = self.request('GET', f'/trips/{trip_id}/eld-logs/')
        return parse_payload(ELDLogSerializer, payload, many=True)

    def generate_eld_log(self, trip_id: int, date_str: str):
        """
        Returns the generated logs. The service answers either with the log
        itself, a list of logs, or ``{"message": ..., "logs": [...]}``.
        """
        payload = self.request('POST', f'/trips/{trip_id}/eld-logs/generate/', {'date': date_str})
        if isinstance(payload, dict) and 'logs' in payload:
            payload = payload['logs']
        if isinstance(payload, list):
            return parse_payload(ELDLogSerializer, payload, many=True)
        return (parse_payload(ELDLogSerializer, payload),)

    # ── Fleet ─────────────────────────────────────────────────

    def list_vehicles(self):
        return parse_payload(VehicleSerializer, self.request('GET', '/vehicles/'), many=True)

    def create_vehicle(self, data: dict):
        return parse_payload(VehicleSerializer, self.request('POST', '/vehicles/', data))

    def list_carriers(self):
        return parse_payload(CarrierSerializer, self.request('GET', '/carriers/'), many=True)

    def create_carrier(self, data: dict):
        return parse_payload(CarrierSerializer, self.request('POST', '/carriers/', data))
