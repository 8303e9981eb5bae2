"""
Reduced-pledge eligibility.

A user may buy at a reduced price only once, and only while none of their
pledges carries a reward. Donation-only pledges do not count. Rewards that no
longer exist are not found by the join, so such users count as unredeemed.
"""
from sqlalchemy import select

from crowdfund.core.database import package_options, pledge_options, pledges, rewards
from crowdfund.features.pledges.errors import ReducedPledgeAlreadyUsed
from crowdfund.features.pledges.identity import count_pledges


def user_has_reward_pledge(session, user_id: str) -> bool:
    """True when any pledge of the user reaches a reward through its options."""
    reward_id = session.execute(
        select(rewards.c.id)
        .select_from(
            pledges.join(pledge_options, pledge_options.c.pledge_id == pledges.c.id)
            .join(package_options, package_options.c.id == pledge_options.c.template_id)
            .join(rewards, rewards.c.id == package_options.c.reward_id)
        )
        .where(pledges.c.user_id == user_id)
        .limit(1)
    ).first()
    return reward_id is not None


def ensure_reduced_pledge_allowed(session, user_id: str) -> None:
    if not count_pledges(session, user_id):
        return
    if user_has_reward_pledge(session, user_id):
        raise ReducedPledgeAlreadyUsed(
            "user tried to buy a reduced membership and already pledged before",
            user_id=user_id,
        )
