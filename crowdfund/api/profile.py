from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query

from crowdfund.core.context import RequestContext, get_request_context
from crowdfund.features.users.service import get_me
from crowdfund.models.user import UserProfile

router = APIRouter(tags=["profile"])


@router.get("/me", response_model=Optional[UserProfile])
def read_me(
    image_size: Optional[Literal["SHARE"]] = Query(None, alias="imageSize"),
    ctx: RequestContext = Depends(get_request_context),
):
    """Session user's profile; null when anonymous."""
    return get_me(ctx, image_size=image_size)
