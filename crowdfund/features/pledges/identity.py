"""
Acting-user resolution for pledge submissions.

- session user: must match the submitted email (sign out first otherwise)
- anonymous, known email without pledges: reuse that user
- anonymous, known email with pledges: ask for email verification
- anonymous, unknown email: create the user
"""
from dataclasses import dataclass
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import func, insert, select, update

from crowdfund.core.context import RequestContext
from crowdfund.core.database import pledges, users
from crowdfund.features.pledges.errors import IdentityMismatch


@dataclass
class ResolvedUser:
    user: Optional[Any]
    is_session_user: bool = False
    created: bool = False
    email_verify: bool = False


def _find_user_by_email(session, email: str):
    return session.execute(select(users).where(users.c.email == email)).first()


def _get_user(session, user_id: str):
    return session.execute(select(users).where(users.c.id == user_id)).first()


def count_pledges(session, user_id: str) -> int:
    return session.execute(
        select(func.count()).select_from(pledges).where(pledges.c.user_id == user_id)
    ).scalar_one()


def resolve_user(ctx: RequestContext, contact) -> ResolvedUser:
    """Determine the acting user for a submission; may insert a new user."""
    session = ctx.session

    if ctx.user is not None:
        if ctx.user.email != contact.email:
            raise IdentityMismatch(
                "session email and pledge.user.email dont match, signout first",
                session_user_id=ctx.user.id,
            )
        return ResolvedUser(user=ctx.user, is_session_user=True)

    existing = _find_user_by_email(session, contact.email)
    if existing is not None:
        if count_pledges(session, existing.id):
            return ResolvedUser(user=None, email_verify=True)
        return ResolvedUser(user=existing)

    user_id = str(uuid4())
    session.execute(
        insert(users).values(
            id=user_id,
            email=contact.email,
            first_name=contact.first_name,
            last_name=contact.last_name,
            birthday=contact.birthday,
            verified=False,
        )
    )
    return ResolvedUser(user=_get_user(session, user_id), created=True)


def sync_user_profile(ctx: RequestContext, user, contact):
    """Copy the submitted first/last name onto the user when they differ."""
    if user.first_name == contact.first_name and user.last_name == contact.last_name:
        return user
    ctx.session.execute(
        update(users)
        .where(users.c.id == user.id)
        .values(first_name=contact.first_name, last_name=contact.last_name)
    )
    return _get_user(ctx.session, user.id)
