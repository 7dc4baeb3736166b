"""Authentication lifecycle: login, logout, refresh rotation, password change, request auth."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from vidtube.core.errors import ErrorKind, Outcome
from vidtube.core.security import (
    ACCESS_TOKEN_TYPE,
    BCRYPT_ROUNDS,
    REFRESH_TOKEN_TYPE,
    TokenError,
    TokenIssuer,
    TokenPair,
)
from vidtube.schemas.auth import LoginResult, TokenPairOut
from vidtube.schemas.user import AccountOut
from vidtube.services import session as protocol
from vidtube.services.accounts import AccountStore, sanitize
from vidtube.services.session import AccountSession, SessionState

logger = logging.getLogger(__name__)

MSG_UNAUTHORIZED = "Unauthorized request"
MSG_INVALID_REFRESH = "Invalid Refresh Token"
MSG_INVALID_ACCESS = "Invalid Access Token"
MSG_TOKEN_PERSIST_FAILED = "Something went wrong while generating refresh and access tokens"


@dataclass(frozen=True)
class RequestCredentials:
    """Tokens pulled off an inbound request; the cookie wins over the header."""

    cookie_token: str | None = None
    bearer_token: str | None = None

    @property
    def token(self) -> str | None:
        return (self.cookie_token or "").strip() or (self.bearer_token or "").strip() or None


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller: verified claims plus the sanitized account."""

    account_id: int
    claims: dict[str, Any]
    user: AccountOut


def _pair_out(tokens: TokenPair) -> TokenPairOut:
    return TokenPairOut(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


class AuthService:
    """
    Drives the session state machine against the credential store.

    Every method returns an Outcome; nothing is persisted unless the
    transition succeeded, so a failed login never stores a token and a
    failed rotation never overwrites the stored one.
    """

    def __init__(
        self,
        store: AccountStore,
        issuer: TokenIssuer,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.bcrypt_rounds = bcrypt_rounds

    def login(
        self, username: str | None, email: str | None, password: str | None
    ) -> Outcome[LoginResult]:
        if not ((username or "").strip() or (email or "").strip()):
            return Outcome.fail(ErrorKind.BAD_REQUEST, "username or email is required")
        if not password:
            return Outcome.fail(ErrorKind.BAD_REQUEST, "password is required")

        account = self.store.find_by_username_or_email(username, email)
        if account is None:
            return Outcome.fail(ErrorKind.NOT_FOUND, "User does not exist")

        transition = protocol.begin_session(
            AccountSession.from_account(account), password, self.issuer
        )
        if not transition.ok:
            return Outcome.from_failure(transition.failure)

        try:
            self.store.set_refresh_token(account.id, transition.session.refresh_token)
        except SQLAlchemyError:
            self.store.db.rollback()
            logger.exception("Persisting refresh token failed for account id=%s", account.id)
            return Outcome.fail(ErrorKind.INTERNAL, MSG_TOKEN_PERSIST_FAILED)
        self.store.db.refresh(account)
        logger.info("Login succeeded for account id=%s", account.id)
        return Outcome.success(
            LoginResult(
                user=sanitize(account),
                access_token=transition.tokens.access_token,
                refresh_token=transition.tokens.refresh_token,
            )
        )

    def logout(self, account_id: int) -> Outcome[None]:
        """Clear the stored refresh token. Logging out twice is not an error."""
        account = self.store.find_by_id(account_id)
        if account is None:
            return Outcome.success(None)
        transition = protocol.end_session(AccountSession.from_account(account))
        try:
            self.store.set_refresh_token(
                account_id, transition.session.refresh_token, transition.session.ended_at
            )
        except SQLAlchemyError:
            self.store.db.rollback()
            logger.exception("Clearing refresh token failed for account id=%s", account_id)
            return Outcome.fail(ErrorKind.INTERNAL, "Something went wrong while logging out")
        logger.info("Logout for account id=%s", account_id)
        return Outcome.success(None)

    def refresh(self, presented: str | None) -> Outcome[TokenPairOut]:
        """Rotate: exchange a valid refresh token for a new pair and invalidate the old one."""
        presented = (presented or "").strip()
        if not presented:
            return Outcome.fail(ErrorKind.UNAUTHORIZED, MSG_UNAUTHORIZED)
        try:
            claims = self.issuer.verify(presented, REFRESH_TOKEN_TYPE)
            account_id = self.issuer.account_id(claims)
        except TokenError:
            return Outcome.fail(ErrorKind.UNAUTHORIZED, MSG_INVALID_REFRESH)

        account = self.store.find_by_id(account_id)
        if account is None:
            return Outcome.fail(ErrorKind.UNAUTHORIZED, MSG_INVALID_REFRESH)

        current = AccountSession.from_account(account)
        transition = protocol.rotate_session(current, presented, self.issuer)
        if not transition.ok:
            if current.state is SessionState.REVOKED:
                logger.warning("Refresh after logout rejected for account id=%s", account_id)
            else:
                logger.warning("Refresh token reuse detected for account id=%s", account_id)
            return Outcome.from_failure(transition.failure)

        try:
            swapped = self.store.swap_refresh_token(
                account_id, presented, transition.session.refresh_token
            )
        except SQLAlchemyError:
            self.store.db.rollback()
            logger.exception("Rotating refresh token failed for account id=%s", account_id)
            return Outcome.fail(ErrorKind.INTERNAL, MSG_TOKEN_PERSIST_FAILED)
        if not swapped:
            # Another rotation replaced the token between our read and write.
            logger.warning("Concurrent refresh rotation lost for account id=%s", account_id)
            return Outcome.fail(ErrorKind.UNAUTHORIZED, protocol.MSG_TOKEN_REUSED)
        logger.info("Rotated refresh token for account id=%s", account_id)
        return Outcome.success(_pair_out(transition.tokens))

    def change_password(
        self, account_id: int, old_password: str | None, new_password: str | None
    ) -> Outcome[None]:
        if not old_password or not new_password:
            return Outcome.fail(ErrorKind.BAD_REQUEST, "All fields are required")
        account = self.store.find_by_id(account_id)
        if account is None:
            return Outcome.fail(ErrorKind.NOT_FOUND, "User does not exist")
        transition = protocol.change_password(
            AccountSession.from_account(account),
            old_password,
            new_password,
            self.bcrypt_rounds,
        )
        if not transition.ok:
            return Outcome.from_failure(transition.failure)
        try:
            self.store.update(account_id, {"password_hash": transition.session.password_hash})
        except SQLAlchemyError:
            self.store.db.rollback()
            logger.exception("Saving new password failed for account id=%s", account_id)
            return Outcome.fail(
                ErrorKind.INTERNAL, "Something went wrong while changing the password"
            )
        logger.info("Password changed for account id=%s", account_id)
        return Outcome.success(None)

    def authenticate(self, credentials: RequestCredentials) -> Outcome[AuthContext]:
        """Validate an access token and resolve it to an account. Read-only."""
        token = credentials.token
        if not token:
            return Outcome.fail(ErrorKind.UNAUTHORIZED, MSG_UNAUTHORIZED)
        try:
            claims = self.issuer.verify(token, ACCESS_TOKEN_TYPE)
            account_id = self.issuer.account_id(claims)
        except TokenError:
            return Outcome.fail(ErrorKind.UNAUTHORIZED, MSG_INVALID_ACCESS)
        account = self.store.find_by_id(account_id)
        if account is None:
            return Outcome.fail(ErrorKind.UNAUTHORIZED, MSG_INVALID_ACCESS)
        return Outcome.success(
            AuthContext(account_id=account.id, claims=claims, user=sanitize(account))
        )
