"""
httphelpers/utils/session_context.py

Session identity collaborator.

The clients never obtain credentials themselves. They ask a SessionContext
for the current username and session token right before each call and
turn the pair into the `Username` / `Session` request headers.

Both values must be non-blank for the headers to be sent at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol, runtime_checkable

USERNAME_HEADER = "Username"
SESSION_HEADER = "Session"


@runtime_checkable
class SessionContext(Protocol):
    def username(self) -> Optional[str]: ...

    def session_token(self) -> Optional[str]: ...


@dataclass(frozen=True)
class StaticSessionContext:
    """SessionContext returning fixed values (scripts, tests, service accounts)."""

    user: Optional[str] = None
    token: Optional[str] = None

    def username(self) -> Optional[str]:
        return self.user

    def session_token(self) -> Optional[str]:
        return self.token


@dataclass(frozen=True)
class SessionHeaders:
    username: str
    session_token: str

    def as_headers(self) -> Dict[str, str]:
        return {
            SESSION_HEADER: self.session_token,
            USERNAME_HEADER: self.username,
        }


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def resolve_session_headers(context: Optional[SessionContext]) -> Optional[SessionHeaders]:
    """
    Read the current identity from `context`.

    Returns None when there is no context or when either value is blank;
    in that case neither header may be sent.
    """
    if context is None:
        return None

    username = context.username()
    token = context.session_token()

    if _is_blank(username) or _is_blank(token):
        return None

    return SessionHeaders(username=str(username), session_token=str(token))
