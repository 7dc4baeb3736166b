"""Shared fixtures for unit and API tests: in-memory database, token issuer, fake media host."""

from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vidtube.core.security import TokenConfig, TokenIssuer, hash_password
from vidtube.models import Base, User
from vidtube.services.accounts import AccountStore
from vidtube.services.media import MediaAsset, StagedFile

ACCESS_SECRET = "unit-access-secret-1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d"
REFRESH_SECRET = "unit-refresh-secret-6d5c4b3a2f1e0d9c8b7a6f5e4d3c2b1a"
TEST_ROUNDS = 4


def make_session_factory() -> sessionmaker:
    """Fresh in-memory SQLite database shared by every session from the factory."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_issuer(
    access_ttl: timedelta = timedelta(minutes=15),
    refresh_ttl: timedelta = timedelta(days=10),
) -> TokenIssuer:
    return TokenIssuer(
        TokenConfig(
            access_secret=ACCESS_SECRET,
            access_ttl=access_ttl,
            refresh_secret=REFRESH_SECRET,
            refresh_ttl=refresh_ttl,
        )
    )


def create_account(
    db: Session,
    username: str = "ana",
    email: str = "ana@x.com",
    password: str = "p@ss1234",
    fullname: str = "Ana Lima",
) -> User:
    return AccountStore(db).create(
        {
            "username": username,
            "email": email,
            "fullname": fullname,
            "avatar": f"https://media.test/{username}.png",
            "password_hash": hash_password(password, TEST_ROUNDS),
        }
    )


class FakeUploader:
    """Media host stand-in: records uploads; fields listed in fail_fields fail."""

    def __init__(self, fail_fields: tuple[str, ...] = ()) -> None:
        self.fail_fields = fail_fields
        self.uploaded: list[str] = []

    async def upload(self, staged: StagedFile) -> MediaAsset | None:
        if staged.field in self.fail_fields:
            return None
        self.uploaded.append(staged.field)
        return MediaAsset(url=f"https://media.test/{staged.path.name}", public_id=staged.path.name)
