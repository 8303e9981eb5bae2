"""Payment alias resolution for recurring-payment binding."""
from typing import Callable, Optional
from uuid import uuid4

from sqlalchemy import and_, select

from crowdfund.core.config import settings
from crowdfund.core.database import payment_sources


def new_alias() -> str:
    return str(uuid4())


def find_stored_alias(session, user_id: str, method: str) -> Optional[str]:
    return session.execute(
        select(payment_sources.c.psp_id).where(
            and_(
                payment_sources.c.user_id == user_id,
                payment_sources.c.method == method,
            )
        )
    ).scalar_one_or_none()


def resolve_payment_alias(
    session,
    user_id: str,
    *,
    is_session_user: bool,
    method: Optional[str] = None,
    alias_factory: Callable[[], str] = new_alias,
) -> str:
    """
    Return the alias to bind the payment method under.

    Only an authenticated session user can already own a stored alias;
    everyone else gets a freshly minted one. The alias is not persisted here.
    """
    alias = None
    if is_session_user:
        alias = find_stored_alias(session, user_id, method or settings.PAYMENT_ALIAS_METHOD)
    return alias or alias_factory()
