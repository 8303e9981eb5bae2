"""
Feed and editorial content routes.

- GET /api/feeds, /api/feeds/{name}
- GET /api/faqs, /api/events, /api/updates
"""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crowdfund.core.context import RequestContext, get_request_context
from crowdfund.core.database import get_db
from crowdfund.features.content.service import get_events, get_faqs, get_updates
from crowdfund.features.feeds.service import get_feed, list_feeds
from crowdfund.models.feed import FeedView


router = APIRouter(tags=["feeds"])


@router.get("/feeds", response_model=List[FeedView])
def read_feeds(ctx: RequestContext = Depends(get_request_context)):
    return list_feeds(ctx)


@router.get("/feeds/{name}", response_model=FeedView)
def read_feed(name: str, ctx: RequestContext = Depends(get_request_context)):
    return get_feed(ctx, name)


@router.get("/faqs", response_model=List[Dict[str, Any]])
def read_faqs(db: Session = Depends(get_db)):
    return get_faqs(db)


@router.get("/events", response_model=List[Dict[str, Any]])
def read_events(db: Session = Depends(get_db)):
    return get_events(db)


@router.get("/updates", response_model=List[Dict[str, Any]])
def read_updates(db: Session = Depends(get_db)):
    return get_updates(db)
