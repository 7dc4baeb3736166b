"""Channel profile: a user's public fields plus subscription aggregates."""

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session, aliased

from vidtube.core.errors import ErrorKind, Outcome
from vidtube.models import Subscription, User
from vidtube.schemas.user import ChannelProfile
from vidtube.services.accounts import normalize_identifier


def get_channel_profile(
    db: Session,
    username: str | None,
    viewer_id: int | None = None,
) -> Outcome[ChannelProfile]:
    """
    Look up a channel by username and aggregate its subscriptions in one query.

    subscribers_count: rows where the channel is subscribed to.
    channels_subscribed_to_count: rows where the channel is the subscriber.
    is_subscribed: whether viewer_id is among the channel's subscribers.
    """
    name = normalize_identifier(username)
    if not name:
        return Outcome.fail(ErrorKind.BAD_REQUEST, "username is missing")

    subscribers = aliased(Subscription)
    subscribed_to = aliased(Subscription)
    viewer_sub = aliased(Subscription)

    subscribers_count = (
        select(func.count(subscribers.id))
        .where(subscribers.channel_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    subscribed_to_count = (
        select(func.count(subscribed_to.id))
        .where(subscribed_to.subscriber_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    viewer_count = (
        select(func.count(viewer_sub.id))
        .where(
            and_(
                viewer_sub.channel_id == User.id,
                viewer_sub.subscriber_id == viewer_id,
            )
        )
        .correlate(User)
        .scalar_subquery()
    )

    row = db.execute(
        select(
            User,
            subscribers_count.label("subscribers_count"),
            subscribed_to_count.label("subscribed_to_count"),
            viewer_count.label("viewer_count"),
        ).where(User.username == name)
    ).first()
    if row is None:
        return Outcome.fail(ErrorKind.NOT_FOUND, "Channel does not exist")

    channel = row[0]
    return Outcome.success(
        ChannelProfile(
            id=channel.id,
            username=channel.username,
            fullname=channel.fullname,
            email=channel.email,
            avatar=channel.avatar,
            cover_image=channel.cover_image or "",
            subscribers_count=row.subscribers_count or 0,
            channels_subscribed_to_count=row.subscribed_to_count or 0,
            is_subscribed=viewer_id is not None and (row.viewer_count or 0) > 0,
        )
    )
