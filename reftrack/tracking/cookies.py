"""
First-party cookie jar for referral attribution.

Mirrors what the browser snippet does with document.cookie so a server-side
storefront can carry attribution between requests: seed it from the incoming
``Cookie`` header, let the TrackingClient read and write it, then relay the
changes with ``set_cookie_headers()``.
"""
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Callable, Optional

SECONDS_PER_DAY = 86400


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CookieStore:

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        # name -> (value, expires_at); expires_at None means a session cookie
        self._cookies: dict[str, tuple[str, Optional[datetime]]] = {}
        self._dirty: set[str] = set()

    @classmethod
    def from_header(cls, header: Optional[str], clock: Callable[[], datetime] = utc_now) -> "CookieStore":
        store = cls(clock=clock)
        store.load_header(header)
        return store

    def load_header(self, header: Optional[str]) -> None:
        """Seed from a request ``Cookie:`` header. The first occurrence of a name wins."""
        for part in (header or "").split(";"):
            name, sep, value = part.strip().partition("=")
            if not sep or not name or name in self._cookies:
                continue
            self._cookies[name] = (value, None)

    def set(self, name: str, value: str, ttl_days: float) -> None:
        expires_at = self._clock() + timedelta(seconds=ttl_days * SECONDS_PER_DAY)
        self._cookies[name] = (value, expires_at)
        self._dirty.add(name)

    def get(self, name: str) -> Optional[str]:
        entry = self._cookies.get(name)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            return None
        return value

    def delete(self, name: str) -> None:
        self.set(name, "", -1)

    def set_cookie_headers(self) -> list[str]:
        """``Set-Cookie`` values for every cookie changed through this store."""
        headers = []
        for name in sorted(self._dirty):
            value, expires_at = self._cookies[name]
            header = f"{name}={value}; Path=/"
            if expires_at is not None:
                header += f"; Expires={format_datetime(expires_at.astimezone(timezone.utc), usegmt=True)}"
            headers.append(header)
        return headers
