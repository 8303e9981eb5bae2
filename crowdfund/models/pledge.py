"""
crowdfund/models/pledge.py
Pledge submission and pledge read models. Wire format is camelCase.
"""

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import date, datetime
from enum import Enum
from typing import Optional, List


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PledgeStatus(str, Enum):
    """Pledge lifecycle: DRAFT -> WAITING_FOR_PAYMENT -> SUCCESSFUL"""

    DRAFT = "DRAFT"
    WAITING_FOR_PAYMENT = "WAITING_FOR_PAYMENT"
    PAID_INVESTIGATE = "PAID_INVESTIGATE"
    SUCCESSFUL = "SUCCESSFUL"
    CANCELLED = "CANCELLED"


class PledgeUserInput(CamelModel):
    """Contact fields submitted with a pledge"""

    email: str = Field(min_length=3, max_length=255)
    first_name: str = Field(max_length=200)
    last_name: str = Field(max_length=200)
    birthday: Optional[date] = None


class PledgeOptionInput(CamelModel):
    """One cart line referencing a package option template"""

    template_id: str
    amount: int
    price: int = Field(description="Unit price in minor units, copied for record keeping")


class PledgeInput(CamelModel):
    total: int = Field(description="Pledge total in minor units")
    reason: Optional[str] = None
    user: PledgeUserInput
    options: List[PledgeOptionInput] = Field(min_length=1)


class SubmitPledgeRequest(CamelModel):
    pledge: PledgeInput


class PledgeReceipt(CamelModel):
    """Result of a committed pledge submission"""

    model_config = ConfigDict(frozen=True)

    pledge_id: str
    user_id: str
    payment_signature: str
    payment_alias: str


class EmailVerification(CamelModel):
    """Returned instead of a receipt when the email already owns pledges"""

    model_config = ConfigDict(frozen=True)

    email_verify: bool = True


class PledgeOptionView(CamelModel):
    """Package option template overlaid with the persisted line item"""

    id: str = Field(description="Combined key '{pledgeId}-{templateId}'")
    template_id: str
    package_id: str
    reward_id: Optional[str] = None
    min_amount: int
    max_amount: int
    default_amount: int
    user_price: bool
    min_user_price: int
    amount: int
    price: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentView(CamelModel):
    id: str
    method: str
    total: int
    status: str
    created_at: Optional[datetime] = None


class MembershipView(CamelModel):
    id: str
    user_id: str
    pledge_id: str
    membership_type_id: str
    type_name: Optional[str] = None
    begin_date: Optional[datetime] = None
    voucher_code: Optional[str] = None
    reduced_price: bool = False
    claimer_name: Optional[str] = None


class PackageSummary(CamelModel):
    id: str
    name: str
    crowdfunding_id: str


class PledgeView(CamelModel):
    id: str
    user_id: str
    package_id: str
    total: int
    donation: int
    reason: Optional[str] = None
    status: PledgeStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    package: Optional[PackageSummary] = None
    options: List[PledgeOptionView] = Field(default_factory=list)
    payments: List[PaymentView] = Field(default_factory=list)
    memberships: List[MembershipView] = Field(default_factory=list)
