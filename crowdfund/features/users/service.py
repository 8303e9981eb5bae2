"""
User profile reads.
- get_me(ctx, image_size=None)
- get_testimonial(session, user, size=None)
"""

from typing import Optional
from sqlalchemy import select

from crowdfund.core.context import RequestContext
from crowdfund.core.database import addresses, memberships, testimonials
from crowdfund.features.pledges.queries import full_name, list_pledges, membership_views
from crowdfund.models.user import AddressView, UserTestimonial, UserProfile


def get_address(session, user) -> Optional[AddressView]:
    if not user.address_id:
        return None
    row = session.execute(select(addresses).where(addresses.c.id == user.address_id)).first()
    if not row:
        return None
    return AddressView(
        name=row.name,
        line1=row.line1,
        line2=row.line2,
        postal_code=row.postal_code,
        city=row.city,
        country=row.country,
    )


def get_testimonial(session, user, size: Optional[str] = None) -> Optional[UserTestimonial]:
    row = session.execute(select(testimonials).where(testimonials.c.user_id == user.id)).first()
    if not row:
        return None
    return UserTestimonial(
        id=row.id,
        user_id=row.user_id,
        name=f"{user.first_name} {user.last_name}",
        role=row.role,
        quote=row.quote,
        image=UserTestimonial.sized_image(row.image, size),
    )


def get_me(ctx: RequestContext, image_size: Optional[str] = None) -> Optional[UserProfile]:
    """Profile of the session user, or None when anonymous."""
    user = ctx.user
    if user is None:
        return None
    session = ctx.session
    membership_rows = session.execute(
        select(memberships).where(memberships.c.user_id == user.id)
    ).all()
    return UserProfile(
        id=user.id,
        email=user.email,
        name=full_name(user),
        first_name=user.first_name,
        last_name=user.last_name,
        birthday=user.birthday,
        verified=user.verified,
        address=get_address(session, user),
        memberships=membership_views(session, membership_rows),
        pledges=list_pledges(ctx),
        testimonial=get_testimonial(session, user, image_size),
    )
