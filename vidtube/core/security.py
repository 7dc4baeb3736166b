"""Password hashing and JWT access/refresh token issuance and verification."""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, Protocol

import bcrypt
import jwt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes of the password.
BCRYPT_MAX_BYTES = 72

PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

TokenKind = Literal["access", "refresh"]


class TokenError(Exception):
    """Raised for any token that fails verification (signature, expiry, shape)."""

    def __init__(self, message: str = "Invalid token") -> None:
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class TokenConfig:
    """Secrets and lifetimes for the two token kinds."""

    access_secret: str
    access_ttl: timedelta
    refresh_secret: str
    refresh_ttl: timedelta
    algorithm: str = "HS256"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenSubject(Protocol):
    """Anything carrying the identity claims embedded in tokens."""

    id: int
    email: str
    username: str
    fullname: str


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash (constant-time in bcrypt)."""
    if not plain_password or not hashed:
        return False
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


class TokenIssuer:
    """
    Mint and verify signed, time-bound access and refresh tokens.

    Access tokens carry the account's identity claims and live for minutes;
    refresh tokens carry only the account id and live for days. Each kind is
    signed with its own secret. Every token gets a random ``jti`` so two tokens
    minted for the same account in the same second are still distinct.
    """

    def __init__(self, config: TokenConfig) -> None:
        self.config = config

    def _secret(self, kind: TokenKind) -> str:
        if kind == ACCESS_TOKEN_TYPE:
            return self.config.access_secret
        return self.config.refresh_secret

    def _encode(self, claims: dict[str, Any], kind: TokenKind, ttl: timedelta) -> str:
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            **claims,
            "type": kind,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret(kind), algorithm=self.config.algorithm)

    def issue_access_token(self, account: TokenSubject) -> str:
        return self._encode(
            {
                "sub": str(account.id),
                "email": account.email,
                "username": account.username,
                "fullname": account.fullname,
            },
            ACCESS_TOKEN_TYPE,
            self.config.access_ttl,
        )

    def issue_refresh_token(self, account: TokenSubject) -> str:
        return self._encode(
            {"sub": str(account.id)},
            REFRESH_TOKEN_TYPE,
            self.config.refresh_ttl,
        )

    def issue_pair(self, account: TokenSubject) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(account),
            refresh_token=self.issue_refresh_token(account),
        )

    def verify(self, token: str, kind: TokenKind) -> dict[str, Any]:
        """
        Decode and validate a token of the given kind; return its claims.

        Raises TokenError on bad signature, expiry, missing claims or wrong kind.
        The error never says which check failed.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret(kind),
                algorithms=[self.config.algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.PyJWTError as e:
            raise TokenError() from e
        if claims.get("type") != kind:
            raise TokenError()
        return claims

    @staticmethod
    def account_id(claims: dict[str, Any]) -> int:
        """Return the account id embedded in verified claims."""
        try:
            return int(claims["sub"])
        except (KeyError, TypeError, ValueError) as e:
            raise TokenError() from e
