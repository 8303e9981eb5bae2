"""
crowdfund/models/feed.py
Feeds and their comments.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import Field

from crowdfund.models.pledge import CamelModel


class CommentView(CamelModel):
    id: str
    feed_id: str
    user_id: str
    content: str
    up_votes: int
    down_votes: int
    score: int = Field(description="upVotes - downVotes")
    users_vote: Optional[int] = Field(default=None, description="Session user's vote: 1, -1 or null")
    created_at: Optional[datetime] = None


class FeedView(CamelModel):
    id: str
    name: str
    comment_max_length: Optional[int] = None
    comment_interval: Optional[int] = None
    comments: List[CommentView] = Field(default_factory=list)
