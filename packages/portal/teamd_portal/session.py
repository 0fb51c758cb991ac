"""
Portal session state machine.

    anonymous ──login_succeeded──────────────▶ authenticated
    anonymous ──token_detected──▶ pending_verification ──verified──▶ authenticated
    pending_verification ──verification_failed / logout / remote_logout──▶ anonymous
    authenticated ──logout / remote_logout──▶ anonymous

The token, user and auth source live in the tab's sessionStorage while the
session is authenticated and are removed when it stops being so.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Callable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import jwt
import structlog

from teamd_shared.schemas.users import TokenUser

from .browser import StorageArea

log = structlog.get_logger()

TOKEN_KEY = "teamd-auth-token"
USER_KEY = "teamd-auth-user"
SOURCE_KEY = "teamd-auth-source"

HANDOFF_PARAM = "auth"


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    PENDING_VERIFICATION = "pending_verification"
    AUTHENTICATED = "authenticated"


class SessionEvent(str, Enum):
    LOGIN_SUCCEEDED = "login_succeeded"
    TOKEN_DETECTED = "token_detected"
    VERIFIED = "verified"
    VERIFICATION_FAILED = "verification_failed"
    REMOTE_LOGOUT = "remote_logout"
    LOGOUT = "logout"


TRANSITIONS: dict[tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.ANONYMOUS, SessionEvent.LOGIN_SUCCEEDED): SessionState.AUTHENTICATED,
    (SessionState.ANONYMOUS, SessionEvent.TOKEN_DETECTED): SessionState.PENDING_VERIFICATION,
    (SessionState.ANONYMOUS, SessionEvent.LOGOUT): SessionState.ANONYMOUS,
    (SessionState.ANONYMOUS, SessionEvent.REMOTE_LOGOUT): SessionState.ANONYMOUS,
    (SessionState.PENDING_VERIFICATION, SessionEvent.VERIFIED): SessionState.AUTHENTICATED,
    (SessionState.PENDING_VERIFICATION, SessionEvent.VERIFICATION_FAILED): SessionState.ANONYMOUS,
    (SessionState.PENDING_VERIFICATION, SessionEvent.LOGOUT): SessionState.ANONYMOUS,
    (SessionState.PENDING_VERIFICATION, SessionEvent.REMOTE_LOGOUT): SessionState.ANONYMOUS,
    (SessionState.AUTHENTICATED, SessionEvent.LOGIN_SUCCEEDED): SessionState.AUTHENTICATED,
    (SessionState.AUTHENTICATED, SessionEvent.TOKEN_DETECTED): SessionState.PENDING_VERIFICATION,
    (SessionState.AUTHENTICATED, SessionEvent.LOGOUT): SessionState.ANONYMOUS,
    (SessionState.AUTHENTICATED, SessionEvent.REMOTE_LOGOUT): SessionState.ANONYMOUS,
}

SessionListener = Callable[[SessionState, SessionState, SessionEvent], None]


class InvalidTransitionError(Exception):
    def __init__(self, state: SessionState, event: SessionEvent):
        super().__init__(f"Cannot apply {event.value!r} in state {state.value!r}")
        self.state = state
        self.event = event


def extract_handoff_token(url: str) -> tuple[Optional[str], str]:
    """Pull the cross-portal `auth` query parameter out of a URL.

    Returns the token (or None) and the URL with the parameter removed.
    """
    parts = urlsplit(url)
    params = parse_qsl(parts.query, keep_blank_values=True)
    token = None
    kept = []
    for name, value in params:
        if name == HANDOFF_PARAM:
            token = token or value or None
        else:
            kept.append((name, value))
    if len(kept) == len(params):
        return None, url
    return token, urlunsplit(parts._replace(query=urlencode(kept)))


def decode_claims(token: str) -> Optional[TokenUser]:
    """Read the user out of a token without checking its signature.

    Only the server can verify a token; this is used to show the pending user
    and to skip verification of tokens that have already expired.
    """
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True, "require": ["exp"]},
        )
        return TokenUser.model_validate(payload["user"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError):
        return None


class SessionMachine:
    """Explicit auth state for one tab."""

    def __init__(self, storage: StorageArea, *, source: str = "teamd-admin"):
        self._storage = storage
        self._source = source
        self._state = SessionState.ANONYMOUS
        self._token: Optional[str] = None
        self._user: Optional[TokenUser] = None
        self._listeners: list[SessionListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[TokenUser]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    def can(self, event: SessionEvent) -> bool:
        return (self._state, event) in TRANSITIONS

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Events ---

    def login_succeeded(self, token: str, user: TokenUser) -> None:
        self._apply(SessionEvent.LOGIN_SUCCEEDED, token=token, user=user)

    def token_detected(self, token: str, user: Optional[TokenUser] = None) -> None:
        self._apply(SessionEvent.TOKEN_DETECTED, token=token, user=user)

    def verified(self, user: TokenUser) -> None:
        self._apply(SessionEvent.VERIFIED, token=self._token, user=user)

    def verification_failed(self) -> None:
        self._apply(SessionEvent.VERIFICATION_FAILED)

    def remote_logout(self) -> None:
        self._apply(SessionEvent.REMOTE_LOGOUT)

    def logout(self) -> None:
        self._apply(SessionEvent.LOGOUT)

    # --- Persistence ---

    def stored_token(self) -> Optional[str]:
        return self._storage.get_item(TOKEN_KEY)

    def stored_user(self) -> Optional[TokenUser]:
        raw = self._storage.get_item(USER_KEY)
        if not raw:
            return None
        try:
            return TokenUser.model_validate(json.loads(raw))
        except ValueError:
            return None

    def discard_stored(self) -> None:
        for key in (TOKEN_KEY, USER_KEY, SOURCE_KEY):
            self._storage.remove_item(key)

    def _persist(self) -> None:
        self._storage.set_item(TOKEN_KEY, self._token or "")
        if self._user is not None:
            self._storage.set_item(USER_KEY, self._user.model_dump_json(by_alias=True))
        self._storage.set_item(SOURCE_KEY, self._source)

    def _apply(
        self,
        event: SessionEvent,
        *,
        token: Optional[str] = None,
        user: Optional[TokenUser] = None,
    ) -> None:
        previous = self._state
        target = TRANSITIONS.get((previous, event))
        if target is None:
            raise InvalidTransitionError(previous, event)

        if target is SessionState.ANONYMOUS:
            self._token = None
            self._user = None
        else:
            self._token = token
            self._user = user

        if target is SessionState.AUTHENTICATED:
            self._persist()
        elif previous is SessionState.AUTHENTICATED or target is SessionState.ANONYMOUS:
            self.discard_stored()

        self._state = target
        log.debug(
            "session.transition",
            session_event=event.value,
            previous=previous.value,
            state=target.value,
        )
        for listener in list(self._listeners):
            listener(previous, target, event)
