"""
crowdfund/models/catalog.py
Crowdfunding catalog: packages, option templates, rewards, goals.
"""

from pydantic import Field
from datetime import datetime
from typing import Optional, List

from crowdfund.models.pledge import CamelModel


class RewardView(CamelModel):
    """Goodie or membership type behind a package option"""

    id: str
    reward_id: str
    reward_type: str = Field(description="'Goodie' or 'MembershipType'")
    name: str
    duration: Optional[int] = None
    price: Optional[int] = None


class PackageOptionView(CamelModel):
    id: str
    package_id: str
    reward_id: Optional[str] = None
    min_amount: int
    max_amount: int
    default_amount: int
    price: int
    user_price: bool
    min_user_price: int
    reward: Optional[RewardView] = None


class PackageView(CamelModel):
    id: str
    crowdfunding_id: str
    name: str
    options: List[PackageOptionView] = Field(default_factory=list)


class GoalView(CamelModel):
    name: str
    description: Optional[str] = None
    people: int
    money: int


class CrowdfundingStatus(CamelModel):
    money: int = 0
    people: int = 0


class CrowdfundingView(CamelModel):
    id: str
    name: str
    begin_date: datetime
    end_date: datetime
    packages: List[PackageView] = Field(default_factory=list)
    goals: List[GoalView] = Field(default_factory=list)
    status: CrowdfundingStatus = Field(default_factory=CrowdfundingStatus)
