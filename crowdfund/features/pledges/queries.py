"""
Pledge read access.

- list_pledges: the session user's pledges
- get_pledge: own pledge, or any pledge of an unverified user for anonymous callers
- get_draft_pledge: pledge reloaded after returning from the payment provider
"""
from typing import Dict, List, Optional

from sqlalchemy import select

from crowdfund.core.context import RequestContext
from crowdfund.core.database import (
    membership_types,
    memberships,
    package_options,
    packages,
    payments,
    pledge_options,
    pledge_payments,
    pledges,
    users,
)
from crowdfund.core.logging import log_event
from crowdfund.features.pledges.errors import PledgeAlreadyPaid, PledgeNotFound, Unauthorized
from crowdfund.models.pledge import (
    MembershipView,
    PackageSummary,
    PaymentView,
    PledgeOptionView,
    PledgeStatus,
    PledgeView,
)


def full_name(user) -> str:
    return " ".join(part for part in (user.first_name, user.last_name) if part)


def _option_views(session, pledge_id: str) -> List[PledgeOptionView]:
    rows = session.execute(
        select(pledge_options).where(pledge_options.c.pledge_id == pledge_id)
    ).all()
    if not rows:
        return []
    templates = {
        template.id: template
        for template in session.execute(
            select(package_options).where(package_options.c.id.in_([row.template_id for row in rows]))
        ).all()
    }
    views = []
    for row in rows:
        template = templates.get(row.template_id)
        if template is None:
            continue
        views.append(PledgeOptionView(
            id=f"{row.pledge_id}-{row.template_id}",
            template_id=row.template_id,
            package_id=template.package_id,
            reward_id=template.reward_id,
            min_amount=template.min_amount,
            max_amount=template.max_amount,
            default_amount=template.default_amount,
            user_price=template.user_price,
            min_user_price=template.min_user_price,
            amount=row.amount,
            price=row.price,
            created_at=row.created_at,
            updated_at=row.updated_at,
        ))
    return views


def _payment_views(session, pledge_id: str) -> List[PaymentView]:
    rows = session.execute(
        select(payments)
        .join(pledge_payments, pledge_payments.c.payment_id == payments.c.id)
        .where(pledge_payments.c.pledge_id == pledge_id)
    ).all()
    return [
        PaymentView(id=row.id, method=row.method, total=row.total, status=row.status, created_at=row.created_at)
        for row in rows
    ]


def membership_views(session, membership_rows, owner_id: Optional[str] = None) -> List[MembershipView]:
    """Membership views; memberships vouchered to someone else carry the claimer's name."""
    if not membership_rows:
        return []
    type_names = {
        row.id: row.name
        for row in session.execute(
            select(membership_types.c.id, membership_types.c.name).where(
                membership_types.c.id.in_({m.membership_type_id for m in membership_rows})
            )
        ).all()
    }
    claimers: Dict[str, object] = {}
    if owner_id is not None:
        claimer_ids = {m.user_id for m in membership_rows if m.user_id != owner_id}
        if claimer_ids:
            claimers = {
                row.id: row
                for row in session.execute(select(users).where(users.c.id.in_(claimer_ids))).all()
            }
    views = []
    for m in membership_rows:
        claimer = claimers.get(m.user_id)
        views.append(MembershipView(
            id=m.id,
            user_id=m.user_id,
            pledge_id=m.pledge_id,
            membership_type_id=m.membership_type_id,
            type_name=type_names.get(m.membership_type_id),
            begin_date=m.begin_date,
            voucher_code=m.voucher_code,
            reduced_price=m.reduced_price,
            claimer_name=full_name(claimer) if claimer is not None else None,
        ))
    return views


def pledge_view(session, pledge) -> PledgeView:
    package = session.execute(select(packages).where(packages.c.id == pledge.package_id)).first()
    membership_rows = session.execute(
        select(memberships).where(memberships.c.pledge_id == pledge.id)
    ).all()
    return PledgeView(
        id=pledge.id,
        user_id=pledge.user_id,
        package_id=pledge.package_id,
        total=pledge.total,
        donation=pledge.donation,
        reason=pledge.reason,
        status=pledge.status,
        created_at=pledge.created_at,
        updated_at=pledge.updated_at,
        package=PackageSummary(id=package.id, name=package.name, crowdfunding_id=package.crowdfunding_id) if package else None,
        options=_option_views(session, pledge.id),
        payments=_payment_views(session, pledge.id),
        memberships=membership_views(session, membership_rows, owner_id=pledge.user_id),
    )


def _load_pledge(session, pledge_id: str):
    return session.execute(select(pledges).where(pledges.c.id == pledge_id)).first()


def _load_owner(session, pledge):
    return session.execute(select(users).where(users.c.id == pledge.user_id)).first()


def list_pledges(ctx: RequestContext) -> List[PledgeView]:
    if ctx.user is None:
        return []
    rows = ctx.session.execute(
        select(pledges).where(pledges.c.user_id == ctx.user.id).order_by(pledges.c.created_at)
    ).all()
    return [pledge_view(ctx.session, row) for row in rows]


def get_pledge(ctx: RequestContext, pledge_id: str) -> PledgeView:
    """Own pledge for session users; anonymous callers only see pledges of unverified users."""
    pledge = _load_pledge(ctx.session, pledge_id)
    visible = False
    if pledge is not None:
        if ctx.user is not None:
            visible = pledge.user_id == ctx.user.id
        else:
            owner = _load_owner(ctx.session, pledge)
            visible = owner is not None and not owner.verified
    if not visible:
        raise PledgeNotFound("pledge not visible to caller", pledge_id=pledge_id).localize(ctx.t)
    return pledge_view(ctx.session, pledge)


def get_draft_pledge(ctx: RequestContext, pledge_id: str) -> PledgeView:
    """
    Reload a pledge after the payment provider redirected back.

    A pledge that is already SUCCESSFUL means the user navigated back after
    paying; that is reported as an error.
    """
    pledge = _load_pledge(ctx.session, pledge_id)
    if pledge is None:
        raise PledgeNotFound("draftPledge for unknown pledge", pledge_id=pledge_id).localize(ctx.t)

    if pledge.status == PledgeStatus.SUCCESSFUL.value:
        log_event(
            "error",
            "draftPledge for successfull pledge",
            request_id=ctx.request_id,
            user_id=ctx.user_id,
            pledge_id=pledge.id,
            error_code=PledgeAlreadyPaid.code,
        )
        raise PledgeAlreadyPaid("draftPledge for successful pledge", pledge_id=pledge_id).localize(ctx.t)

    owner = _load_owner(ctx.session, pledge)
    is_owner = ctx.user is not None and ctx.user.id == pledge.user_id
    if is_owner or (owner is not None and not owner.verified):
        return pledge_view(ctx.session, pledge)

    log_event(
        "error",
        "unauthorized draftPledge",
        request_id=ctx.request_id,
        user_id=ctx.user_id,
        pledge_id=pledge.id,
        error_code=Unauthorized.code,
    )
    raise Unauthorized("unauthorized draftPledge", pledge_id=pledge_id).localize(ctx.t)
