"""
Crowdfunding catalog reads.
- list_crowdfundings() / get_crowdfunding(name)
- package options resolved to their goodie or membership type
- funding status over successful pledges and memberships
"""

from typing import Dict, List, Optional

from sqlalchemy import func, select

from crowdfund.core.context import RequestContext
from crowdfund.core.database import (
    crowdfunding_goals,
    crowdfundings,
    goodies,
    membership_types,
    memberships,
    package_options,
    packages,
    pledges,
)
from crowdfund.core.errors import NotFoundError
from crowdfund.models.catalog import (
    CrowdfundingStatus,
    CrowdfundingView,
    GoalView,
    PackageOptionView,
    PackageView,
    RewardView,
)
from crowdfund.models.pledge import PledgeStatus


def _rewards_by_id(session, reward_ids) -> Dict[str, RewardView]:
    reward_ids = {rid for rid in reward_ids if rid}
    if not reward_ids:
        return {}
    resolved: Dict[str, RewardView] = {}
    for row in session.execute(select(goodies).where(goodies.c.reward_id.in_(reward_ids))).all():
        resolved.setdefault(row.reward_id, RewardView(
            id=row.id, reward_id=row.reward_id, reward_type="Goodie", name=row.name,
        ))
    for row in session.execute(select(membership_types).where(membership_types.c.reward_id.in_(reward_ids))).all():
        resolved.setdefault(row.reward_id, RewardView(
            id=row.id, reward_id=row.reward_id, reward_type="MembershipType", name=row.name,
            duration=row.duration, price=row.price,
        ))
    return resolved


def package_views(session, crowdfunding_id: str) -> List[PackageView]:
    package_rows = session.execute(
        select(packages).where(packages.c.crowdfunding_id == crowdfunding_id).order_by(packages.c.name)
    ).all()
    if not package_rows:
        return []
    option_rows = session.execute(
        select(package_options).where(package_options.c.package_id.in_([p.id for p in package_rows]))
    ).all()
    rewards = _rewards_by_id(session, [o.reward_id for o in option_rows])

    options_by_package: Dict[str, List[PackageOptionView]] = {}
    for o in option_rows:
        options_by_package.setdefault(o.package_id, []).append(PackageOptionView(
            id=o.id,
            package_id=o.package_id,
            reward_id=o.reward_id,
            min_amount=o.min_amount,
            max_amount=o.max_amount,
            default_amount=o.default_amount,
            price=o.price,
            user_price=o.user_price,
            min_user_price=o.min_user_price,
            reward=rewards.get(o.reward_id),
        ))
    return [
        PackageView(id=p.id, crowdfunding_id=p.crowdfunding_id, name=p.name, options=options_by_package.get(p.id, []))
        for p in package_rows
    ]


def goal_views(session, crowdfunding_id: str) -> List[GoalView]:
    rows = session.execute(
        select(crowdfunding_goals)
        .where(crowdfunding_goals.c.crowdfunding_id == crowdfunding_id)
        .order_by(crowdfunding_goals.c.people.asc(), crowdfunding_goals.c.money.asc())
    ).all()
    return [GoalView(name=r.name, description=r.description, people=r.people, money=r.money) for r in rows]


def funding_status(session) -> CrowdfundingStatus:
    """Money from successful pledges and people from memberships, over all crowdfundings."""
    money = session.execute(
        select(func.sum(pledges.c.total)).where(pledges.c.status == PledgeStatus.SUCCESSFUL.value)
    ).scalar()
    people = session.execute(select(func.count(memberships.c.id))).scalar()
    return CrowdfundingStatus(money=money or 0, people=people or 0)


def _crowdfunding_view(session, row, status: CrowdfundingStatus) -> CrowdfundingView:
    return CrowdfundingView(
        id=row.id,
        name=row.name,
        begin_date=row.begin_date,
        end_date=row.end_date,
        packages=package_views(session, row.id),
        goals=goal_views(session, row.id),
        status=status,
    )


def list_crowdfundings(ctx: RequestContext) -> List[CrowdfundingView]:
    rows = ctx.session.execute(select(crowdfundings).order_by(crowdfundings.c.begin_date)).all()
    if not rows:
        return []
    status = funding_status(ctx.session)
    return [_crowdfunding_view(ctx.session, row, status) for row in rows]


def get_crowdfunding(ctx: RequestContext, name: str) -> CrowdfundingView:
    row: Optional[object] = ctx.session.execute(
        select(crowdfundings).where(crowdfundings.c.name == name)
    ).first()
    if row is None:
        raise NotFoundError(ctx.t("api/crowdfunding/notFound"))
    return _crowdfunding_view(ctx.session, row, funding_status(ctx.session))
