"""SQLAlchemy ORM models."""

from vidtube.models.base import Base
from vidtube.models.subscription import Subscription
from vidtube.models.user import User

__all__ = ["Base", "Subscription", "User"]
