from datetime import date
from typing import List, Optional
from pydantic import ConfigDict, Field

from crowdfund.models.pledge import CamelModel, MembershipView, PledgeView


class AddressView(CamelModel):
    name: Optional[str] = None
    line1: str
    line2: Optional[str] = None
    postal_code: str
    city: str
    country: str


class UserTestimonial(CamelModel):
    id: str
    user_id: str
    name: str
    role: Optional[str] = None
    quote: Optional[str] = None
    image: Optional[str] = None

    @staticmethod
    def sized_image(image: Optional[str], size: Optional[str] = None) -> Optional[str]:
        # Share images are rendered from the large variant
        if image and size == "SHARE":
            return image.replace("384x384.jpeg", "1000x1000.jpeg")
        return image


class UserProfile(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    birthday: Optional[date] = None
    verified: bool = False
    address: Optional[AddressView] = None
    memberships: List[MembershipView] = Field(default_factory=list)
    pledges: List[PledgeView] = Field(default_factory=list)
    testimonial: Optional[UserTestimonial] = None
