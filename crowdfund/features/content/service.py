"""
Editorial content synced from spreadsheets into the gsheets table.

Each sheet is one JSON list of row dicts; only published rows are served.
Rows whose date is missing or not ISO 8601 sort last, and such updates are
never considered published.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from crowdfund.core.database import gsheets

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _sheet(session, name: str) -> List[Dict[str, Any]]:
    data = session.execute(select(gsheets.c.data).where(gsheets.c.name == name)).scalar_one_or_none()
    return list(data or [])


def _parse(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def get_faqs(session) -> List[Dict[str, Any]]:
    return [row for row in _sheet(session, "faqs") if row.get("published")]


def get_events(session) -> List[Dict[str, Any]]:
    rows = [row for row in _sheet(session, "events") if row.get("published")]
    dated = [(_parse(row.get("date")), row) for row in rows]
    # Stable sort: undated rows keep their sheet order at the end
    dated.sort(key=lambda pair: (pair[0] is None, pair[0] or _UNDATED))
    return [row for _, row in dated]


def get_updates(session, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Updates already published at `now`, newest first."""
    now = now or datetime.now(timezone.utc)
    published = []
    for row in _sheet(session, "updates"):
        published_at = _parse(row.get("publishedDateTime"))
        if published_at is not None and published_at < now:
            published.append((published_at, row))
    return [row for _, row in sorted(published, key=lambda pair: pair[0], reverse=True)]
