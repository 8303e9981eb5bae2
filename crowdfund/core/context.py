"""
Per-request context passed explicitly through service calls.

The context bundles the open database session, the session user (if any),
the translator for user-facing messages and the request id used for log
correlation.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from crowdfund.core.auth import load_session_user
from crowdfund.core.database import get_db
from crowdfund.core.i18n import Translator, resolve_locale, translator
from crowdfund.core.logging import get_request_id


@dataclass
class RequestContext:
    session: Session
    user: Optional[Any] = None
    t: Translator = field(default_factory=translator)
    request_id: Optional[str] = None
    locale: str = "de"

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user is not None else None


def get_request_context(request: Request, db: Session = Depends(get_db)) -> RequestContext:
    """FastAPI dependency building the RequestContext for a request."""
    locale = resolve_locale(request.headers.get("accept-language"))
    return RequestContext(
        session=db,
        user=load_session_user(request, db),
        t=translator(locale),
        request_id=getattr(request.state, "request_id", None) or get_request_id(),
        locale=locale,
    )
