"""
Crowdfunding catalog routes.

- GET /api/crowdfundings
- GET /api/crowdfundings/{name}
"""
from typing import List
from fastapi import APIRouter, Depends

from crowdfund.core.context import RequestContext, get_request_context
from crowdfund.features.crowdfundings.service import get_crowdfunding, list_crowdfundings
from crowdfund.models.catalog import CrowdfundingView


router = APIRouter(prefix="/crowdfundings", tags=["crowdfundings"])


@router.get("", response_model=List[CrowdfundingView])
def read_crowdfundings(ctx: RequestContext = Depends(get_request_context)):
    return list_crowdfundings(ctx)


@router.get("/{name}", response_model=CrowdfundingView)
def read_crowdfunding(name: str, ctx: RequestContext = Depends(get_request_context)):
    return get_crowdfunding(ctx, name)
