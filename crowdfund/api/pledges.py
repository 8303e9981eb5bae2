"""
Pledge API routes.

- POST /api/pledges: Submit a pledge
- GET  /api/pledges: Session user's pledges
- GET  /api/pledges/{pledge_id}: One pledge
- GET  /api/pledges/{pledge_id}/draft: Pledge reloaded after payment redirect
"""
from typing import List, Union
from fastapi import APIRouter, Depends

from crowdfund.core.context import RequestContext, get_request_context
from crowdfund.features.payments.signature import SignatureProvider, get_signer
from crowdfund.features.pledges.queries import get_draft_pledge, get_pledge, list_pledges
from crowdfund.features.pledges.service import submit_pledge
from crowdfund.models.pledge import EmailVerification, PledgeReceipt, PledgeView, SubmitPledgeRequest


router = APIRouter(prefix="/pledges", tags=["pledges"])


def get_payment_signer() -> SignatureProvider:
    """Signer dependency; overridden in tests."""
    return get_signer()


@router.post("", response_model=Union[PledgeReceipt, EmailVerification])
def create_pledge(
    request: SubmitPledgeRequest,
    ctx: RequestContext = Depends(get_request_context),
    signer: SignatureProvider = Depends(get_payment_signer),
):
    """
    Submit a pledge.

    Returns:
        {"pledgeId", "userId", "paymentSignature", "paymentAlias"}
        or {"emailVerify": true} when the email already owns pledges

    Errors:
        400: Cart failed validation (generic message)
        409: Reduced price already used
    """
    return submit_pledge(ctx, request.pledge, signer=signer)


@router.get("", response_model=List[PledgeView])
def read_pledges(ctx: RequestContext = Depends(get_request_context)):
    return list_pledges(ctx)


@router.get("/{pledge_id}", response_model=PledgeView)
def read_pledge(pledge_id: str, ctx: RequestContext = Depends(get_request_context)):
    return get_pledge(ctx, pledge_id)


@router.get("/{pledge_id}/draft", response_model=PledgeView)
def read_draft_pledge(pledge_id: str, ctx: RequestContext = Depends(get_request_context)):
    return get_draft_pledge(ctx, pledge_id)
