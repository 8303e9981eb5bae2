"""
Feed reads.
- list_feeds(ctx) / get_feed(ctx, name)
- comments newest first, scored, with the session user's own vote
"""

from typing import List, Optional

from sqlalchemy import select

from crowdfund.core.context import RequestContext
from crowdfund.core.database import comments, feeds
from crowdfund.core.errors import NotFoundError
from crowdfund.models.feed import CommentView, FeedView


def users_vote(votes, user_id: Optional[str]) -> Optional[int]:
    if not user_id:
        return None
    for vote in votes or []:
        if vote.get("userId") == user_id:
            return vote.get("vote")
    return None


def comment_views(session, feed_id: str, user_id: Optional[str]) -> List[CommentView]:
    rows = session.execute(
        select(comments)
        .where(comments.c.feed_id == feed_id)
        .order_by(comments.c.created_at.desc())
    ).all()
    return [
        CommentView(
            id=row.id,
            feed_id=row.feed_id,
            user_id=row.user_id,
            content=row.content,
            up_votes=row.up_votes,
            down_votes=row.down_votes,
            score=row.up_votes - row.down_votes,
            users_vote=users_vote(row.votes, user_id),
            created_at=row.created_at,
        )
        for row in rows
    ]


def _feed_view(ctx: RequestContext, row) -> FeedView:
    return FeedView(
        id=row.id,
        name=row.name,
        comment_max_length=row.comment_max_length,
        comment_interval=row.comment_interval,
        comments=comment_views(ctx.session, row.id, ctx.user_id),
    )


def list_feeds(ctx: RequestContext) -> List[FeedView]:
    rows = ctx.session.execute(select(feeds).order_by(feeds.c.name)).all()
    return [_feed_view(ctx, row) for row in rows]


def get_feed(ctx: RequestContext, name: str) -> FeedView:
    row = ctx.session.execute(select(feeds).where(feeds.c.name == name)).first()
    if row is None:
        raise NotFoundError(ctx.t("api/feed/notFound"))
    return _feed_view(ctx, row)
