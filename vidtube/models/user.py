"""ORM model for user accounts (credentials, session token and profile)."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, func

from vidtube.models.base import Base


class User(Base):
    """
    Account record.

    password_hash is a bcrypt digest, never the plain password. refresh_token
    holds the single currently valid refresh token, or NULL when there is no
    active session. session_ended_at is stamped on logout and cleared on the
    next login, telling a signed-out account apart from one that never signed in.
    username and email are stored trimmed and lowercased.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(320), nullable=False, unique=True, index=True)
    fullname = Column(String(255), nullable=False, index=True)
    avatar = Column(String(2048), nullable=False)
    cover_image = Column(String(2048), nullable=False, default="")
    watch_history = Column(JSON, nullable=False, default=list)
    password_hash = Column(String(255), nullable=False)
    refresh_token = Column(Text, nullable=True)
    session_ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
