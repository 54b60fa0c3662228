"""
Session store: the signed-in user and their tokens.

Constructed once on app start (see ``FleetConfig.ready``); it owns the
``ApiClient`` and the durable storage slot the tokens live in.
"""

import json
import logging
import threading

from django.conf import settings

from .exceptions import FleetError
from .models import User
from .serializers import RegisterSerializer, validate_form
from .services.api import ApiClient
from .services.storage import ACCESS_TOKEN, REFRESH_TOKEN, USER, SessionStorage

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, storage: SessionStorage = None, base_url: str = None, http=None, timeout=None):
        base_url = base_url or settings.ELD_API_BASE_URL
        self.storage = storage if storage is not None else SessionStorage.for_base_url(base_url)
        self._lock = threading.RLock()
        self._user = None
        self._access_token = None
        self._refresh_token = None
        self._logout_listeners = []
        self.restore()
        self.client = ApiClient(self, base_url=base_url, http=http, timeout=timeout)

    # ── State ─────────────────────────────────────────────────

    @property
    def user(self):
        return self._user

    @property
    def access_token(self):
        return self._access_token

    @property
    def refresh_token(self):
        return self._refresh_token

    @property
    def is_authenticated(self) -> bool:
        return bool(self._access_token) and self._user is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self._user.is_admin

    def restore(self) -> None:
        """Load a persisted session; a corrupted user record logs out."""
        token = self.storage.get(ACCESS_TOKEN)
        raw_user = self.storage.get(USER)
        if not (token and raw_user):
            return

        try:
            user = User(**json.loads(raw_user))
        except (TypeError, ValueError):
            logger.warning('Stored user profile is corrupted; clearing the session.')
            self.storage.clear()
            return

        with self._lock:
            self._access_token = token
            self._refresh_token = self.storage.get(REFRESH_TOKEN)
            self._user = user
        logger.info('Restored session for %s', user.username)

    def set_access_token(self, access: str, refresh: str = None) -> None:
        with self._lock:
            self._access_token = access
            self.storage.set(ACCESS_TOKEN, access)
            if refresh:
                self._refresh_token = refresh
                self.storage.set(REFRESH_TOKEN, refresh)

    def _start(self, tokens) -> None:
        with self._lock:
            self._access_token = tokens.access
            self._refresh_token = tokens.refresh
            self.storage.set(ACCESS_TOKEN, tokens.access)
            if tokens.refresh:
                self.storage.set(REFRESH_TOKEN, tokens.refresh)
            else:
                self.storage.delete(REFRESH_TOKEN)
        self.client.mark_authenticated()

    def _set_user(self, user: User) -> None:
        with self._lock:
            self._user = user
            self.storage.set(USER, json.dumps(user.to_dict()))

    def _clear(self) -> None:
        with self._lock:
            self._user = None
            self._access_token = None
            self._refresh_token = None
            self.storage.clear()
        for callback in list(self._logout_listeners):
            callback()

    def add_logout_listener(self, callback) -> None:
        self._logout_listeners.append(callback)

    # ── Operations ────────────────────────────────────────────

    def login(self, username: str, password: str) -> User:
        tokens = self.client.login(username, password)
        return self._complete_sign_in(tokens)

    def register(self, fields) -> User:
        """Create the account (and its carrier/driver enrollment), then sign in."""
        payload = validate_form(RegisterSerializer, fields)
        tokens = self.client.register(payload)
        return self._complete_sign_in(tokens)

    def _complete_sign_in(self, tokens) -> User:
        self._start(tokens)
        try:
            user = self.client.user_info()
        except FleetError:
            self.client.mark_expired()
            self._clear()
            raise
        self._set_user(user)
        logger.info('Signed in as %s', user.username)
        return user

    def logout(self) -> None:
        self.client.mark_expired()
        self._clear()
        logger.info('Signed out')

    def expire(self) -> None:
        """Called by the API client when the session cannot be recovered."""
        logger.info('Session expired; signing out')
        self._clear()

    def close(self) -> None:
        self.client.close()
