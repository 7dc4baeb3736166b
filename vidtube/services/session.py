"""
Session state machine for a single account: login, logout, rotation, password change.

Each transition is a pure function of the account's current session snapshot
and its input, returning the next snapshot plus either the issued tokens or a
Failure. Nothing here touches the database or the HTTP layer; the caller
persists ``Transition.session`` only when ``Transition.ok`` is true.
"""

import hmac
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from vidtube.core.errors import ErrorKind, Failure
from vidtube.core.security import (
    BCRYPT_ROUNDS,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    TokenIssuer,
    TokenPair,
    hash_password,
    verify_password,
)

MSG_INVALID_CREDENTIALS = "Invalid user credentials"
MSG_TOKEN_REUSED = "Refresh Token is Expired or Used"
MSG_INVALID_OLD_PASSWORD = "Invalid old password"
MSG_INVALID_NEW_PASSWORD = (
    f"New password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters"
)


class SessionState(str, Enum):
    """Derived from the stored row: a refresh token means AUTHENTICATED, a logout stamp REVOKED."""

    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    REVOKED = "revoked"


@dataclass(frozen=True)
class AccountSession:
    """Snapshot of the auth-relevant fields of one account."""

    id: int
    username: str
    email: str
    fullname: str
    password_hash: str
    refresh_token: str | None = None
    ended_at: datetime | None = None
    state: SessionState = SessionState.ANONYMOUS

    @classmethod
    def from_account(cls, account) -> "AccountSession":
        """Build a snapshot from a stored account row."""
        if account.refresh_token:
            state = SessionState.AUTHENTICATED
        elif account.session_ended_at is not None:
            state = SessionState.REVOKED
        else:
            state = SessionState.ANONYMOUS
        return cls(
            id=account.id,
            username=account.username,
            email=account.email,
            fullname=account.fullname,
            password_hash=account.password_hash,
            refresh_token=account.refresh_token,
            ended_at=account.session_ended_at,
            state=state,
        )


@dataclass(frozen=True)
class Transition:
    session: AccountSession
    tokens: TokenPair | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def _rejected(current: AccountSession, kind: ErrorKind, message: str) -> Transition:
    return Transition(session=current, failure=Failure(kind, message))


def begin_session(current: AccountSession, password: str, issuer: TokenIssuer) -> Transition:
    """Login: verify the password and mint a pair; the new refresh token replaces any prior one."""
    if not verify_password(password, current.password_hash):
        return _rejected(current, ErrorKind.UNAUTHORIZED, MSG_INVALID_CREDENTIALS)
    tokens = issuer.issue_pair(current)
    return Transition(
        session=replace(
            current,
            refresh_token=tokens.refresh_token,
            ended_at=None,
            state=SessionState.AUTHENTICATED,
        ),
        tokens=tokens,
    )


def end_session(current: AccountSession, now: datetime | None = None) -> Transition:
    """
    Logout: clear the stored refresh token and stamp the logout time.

    Succeeds from any state. Ending an already revoked session keeps the
    original stamp.
    """
    if current.state is SessionState.REVOKED:
        ended_at = current.ended_at
    else:
        ended_at = now or datetime.now(timezone.utc)
    return Transition(
        session=replace(
            current, refresh_token=None, ended_at=ended_at, state=SessionState.REVOKED
        )
    )


def rotate_session(current: AccountSession, presented: str, issuer: TokenIssuer) -> Transition:
    """
    Exchange the presented refresh token for a new pair.

    The presented token must equal the stored one byte for byte. Anything else,
    including a superseded token replayed after a legitimate rotation, is rejected.
    """
    if current.state is SessionState.REVOKED:
        return _rejected(current, ErrorKind.UNAUTHORIZED, MSG_TOKEN_REUSED)
    stored = current.refresh_token
    if not stored or not hmac.compare_digest(presented.encode("utf-8"), stored.encode("utf-8")):
        return _rejected(current, ErrorKind.UNAUTHORIZED, MSG_TOKEN_REUSED)
    tokens = issuer.issue_pair(current)
    return Transition(
        session=replace(
            current,
            refresh_token=tokens.refresh_token,
            ended_at=None,
            state=SessionState.AUTHENTICATED,
        ),
        tokens=tokens,
    )


def change_password(
    current: AccountSession,
    old_password: str,
    new_password: str,
    rounds: int = BCRYPT_ROUNDS,
) -> Transition:
    """Re-hash with the new password. The current refresh token stays valid."""
    if not verify_password(old_password, current.password_hash):
        return _rejected(current, ErrorKind.BAD_REQUEST, MSG_INVALID_OLD_PASSWORD)
    if not new_password or not (PASSWORD_MIN_LEN <= len(new_password) <= PASSWORD_MAX_LEN):
        return _rejected(current, ErrorKind.BAD_REQUEST, MSG_INVALID_NEW_PASSWORD)
    return Transition(
        session=replace(current, password_hash=hash_password(new_password, rounds))
    )
