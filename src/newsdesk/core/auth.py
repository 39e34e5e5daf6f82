"""
Session lifecycle for the hosted auth service (GoTrue-compatible REST API).

Keeps the current session in a JSON file under the data directory, refreshes
tokens that are about to expire, and notifies listeners of auth events.
Signing in also records the user in ``user_profiles``.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from .dates import now_iso

logger = logging.getLogger(__name__)

INITIAL_SESSION = "INITIAL_SESSION"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"

DEFAULT_REFRESH_MARGIN = 300

AuthCallback = Callable[[str, Optional[Dict[str, Any]]], None]


class AuthError(RuntimeError):
    """Raised when the auth service rejects a request."""


class AuthManager:
    """Client-side session manager for a GoTrue-style auth endpoint.

    Args:
        base_url: Project URL, e.g. ``https://xyz.supabase.co``
        anon_key: Public API key sent as ``apikey`` header
        storage_path: JSON file the session is persisted to
        refresh_margin: Refresh when fewer seconds than this remain
        db: Optional DatabaseManager used for profile upserts
    """

    def __init__(self, base_url: str, anon_key: str, storage_path: Path,
                 refresh_margin: int = DEFAULT_REFRESH_MARGIN, db=None,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], float] = time.time, timeout: float = 10):
        if not base_url:
            raise AuthError("auth.url is not configured")
        self.base_url = base_url.rstrip('/')
        self.anon_key = anon_key
        self.storage_path = Path(storage_path)
        self.refresh_margin = refresh_margin
        self.db = db
        self.http = session or requests.Session()
        self.timeout = timeout
        self._clock = clock
        self._listeners: List[AuthCallback] = []
        self._session: Optional[Dict[str, Any]] = self._load_session()

    # ------------------------------------------------------------------
    # Listeners

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        """Register *callback(event, session)*; returns a function that unsubscribes it.

        The callback immediately receives ``INITIAL_SESSION`` with the stored session.
        """
        self._listeners.append(callback)
        callback(INITIAL_SESSION, self._session)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str) -> None:
        logger.debug(f"Auth event {event}")
        if event == SIGNED_IN and self.db is not None and self._session:
            user = self._session.get('user') or {}
            if user.get('id'):
                self.db.upsert_user_profile(user['id'], user.get('email'), now_iso())
        for callback in list(self._listeners):
            try:
                callback(event, self._session)
            except Exception as e:
                logger.error(f"Auth listener failed on {event}: {e}")

    # ------------------------------------------------------------------
    # Storage

    def _load_session(self) -> Optional[Dict[str, Any]]:
        if not self.storage_path.exists():
            return None
        try:
            data = json.loads(self.storage_path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.storage_path}: {e}")
            return None
        return data if isinstance(data, dict) and data.get('access_token') else None

    def _store_session(self, data: Dict[str, Any]) -> Dict[str, Any]:
        session = dict(data)
        if not session.get('expires_at'):
            session['expires_at'] = int(self._clock()) + int(session.get('expires_in') or 3600)
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage_path.write_text(json.dumps(session, indent=2), encoding='utf-8')
        try:
            self.storage_path.chmod(0o600)
        except OSError:
            logger.debug(f"Could not restrict permissions on {self.storage_path}")
        self._session = session
        return session

    def _clear_session(self) -> None:
        self._session = None
        if self.storage_path.exists():
            self.storage_path.unlink()

    # ------------------------------------------------------------------
    # HTTP

    def _request(self, method: str, path: str, *, params=None, payload=None,
                 token: Optional[str] = None) -> Dict[str, Any]:
        headers = {'apikey': self.anon_key, 'Content-Type': 'application/json'}
        headers['Authorization'] = f"Bearer {token or self.anon_key}"
        resp = self.http.request(
            method, f"{self.base_url}/auth/v1/{path}",
            params=params, json=payload, headers=headers, timeout=self.timeout,
        )
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = body.get('error_description') or body.get('msg') or body.get('message') or resp.reason
            raise AuthError(f"Auth request failed ({resp.status_code}): {message}")
        if not resp.content:
            return {}
        return resp.json()

    # ------------------------------------------------------------------
    # Session operations

    def get_session(self) -> Optional[Dict[str, Any]]:
        return self._session

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return (self._session or {}).get('user')

    def seconds_until_expiry(self) -> Optional[float]:
        if not self._session:
            return None
        return float(self._session.get('expires_at') or 0) - self._clock()

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request('POST', 'token', params={'grant_type': 'password'},
                             payload={'email': email, 'password': password})
        session = self._store_session(data)
        logger.info(f"Signed in as {email}")
        self._emit(SIGNED_IN)
        return session

    def refresh(self) -> Dict[str, Any]:
        if not self._session or not self._session.get('refresh_token'):
            raise AuthError("No session to refresh")
        data = self._request('POST', 'token', params={'grant_type': 'refresh_token'},
                             payload={'refresh_token': self._session['refresh_token']})
        session = self._store_session(data)
        self._emit(TOKEN_REFRESHED)
        return session

    def refresh_if_needed(self) -> bool:
        """Refresh the session when it expires within the margin; returns True if refreshed."""
        remaining = self.seconds_until_expiry()
        if remaining is None or remaining >= self.refresh_margin:
            return False
        logger.info(f"Session expires in {int(remaining)}s, refreshing")
        self.refresh()
        return True

    def fetch_user(self) -> Dict[str, Any]:
        """Reload the user record from the auth service."""
        if not self._session:
            raise AuthError("Not signed in")
        user = self._request('GET', 'user', token=self._session['access_token'])
        if user != self._session.get('user'):
            self._store_session({**self._session, 'user': user})
            self._emit(USER_UPDATED)
        return user

    def sign_out(self) -> None:
        """End the session remotely; local state is cleared even if the call fails."""
        if self._session:
            try:
                self._request('POST', 'logout', token=self._session.get('access_token'))
            except (AuthError, requests.RequestException) as e:
                logger.warning(f"Remote sign-out failed, clearing local session anyway: {e}")
        self._clear_session()
        self._emit(SIGNED_OUT)

    def check_health(self) -> bool:
        """Return False only when the session is expired and cannot be refreshed.

        Network problems while refreshing count as healthy; an unrecoverable
        session is cleared.
        """
        if not self._session:
            return True
        remaining = self.seconds_until_expiry()
        if remaining is not None and remaining > 0:
            return True
        logger.warning("Session expired, attempting refresh")
        try:
            self.refresh()
            return True
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning(f"Temporary network error during health check: {e}")
            return True
        except (AuthError, requests.RequestException) as e:
            logger.warning(f"Could not refresh expired session: {e}")
        self._clear_session()
        self._emit(SIGNED_OUT)
        return False
