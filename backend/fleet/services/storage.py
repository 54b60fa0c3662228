"""
Durable key-value slot for the client session.

Backed by a Django cache with no expiry (a file-based cache by default, so the
session survives restarts). Keys are scoped to the API origin.
"""

from urllib.parse import urlsplit

from django.conf import settings
from django.core.cache import caches


ACCESS_TOKEN = 'access_token'
REFRESH_TOKEN = 'refresh_token'
USER = 'user'

SESSION_KEYS = (ACCESS_TOKEN, REFRESH_TOKEN, USER)


def origin_scope(base_url: str) -> str:
    parts = urlsplit(base_url or '')
    return parts.netloc or base_url or ''


class SessionStorage:
    def __init__(self, cache=None, scope: str = ''):
        self._cache = cache if cache is not None else caches[settings.ELD_SESSION_CACHE]
        self._scope = scope

    @classmethod
    def for_base_url(cls, base_url: str, cache=None) -> 'SessionStorage':
        return cls(cache=cache, scope=origin_scope(base_url))

    def _key(self, name: str) -> str:
        return f'{self._scope}:{name}' if self._scope else name

    def get(self, name: str):
        return self._cache.get(self._key(name))

    def set(self, name: str, value) -> None:
        self._cache.set(self._key(name), value, timeout=None)

    def delete(self, name: str) -> None:
        self._cache.delete(self._key(name))

    def clear(self) -> None:
        self._cache.delete_many([self._key(name) for name in SESSION_KEYS])
