"""ORM model for channel subscriptions: subscriber (a user) follows channel (a user)."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint, func

from vidtube.models.base import Base


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("subscriber_id", "channel_id", name="uq_subscriptions_subscriber_channel"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    channel_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
