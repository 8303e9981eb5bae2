"""
Pricing validation for a pledge cart.

Pure computation over the submitted options and the package option templates
they reference. The submitted per-option price is not compared with the
template price; it is stored as-is for record keeping and only the total is
checked.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Sequence

from crowdfund.features.pledges.errors import (
    AmountOutOfRange,
    CrossPackageSelection,
    InvalidTemplateReference,
    MissingReductionReason,
    TotalBelowMinimum,
)

DEFAULT_TOTAL_FLOOR = 100


@dataclass(frozen=True)
class PricingResult:
    package_id: str
    min_total: int
    regular_total: int
    donation: int

    @property
    def reduced(self) -> bool:
        return self.donation < 0


def index_templates(templates: Iterable[Any]) -> Dict[str, Any]:
    return {template.id: template for template in templates}


def unit_floor_price(template: Any) -> int:
    """Lowest unit price a template accepts: min_user_price for user-priced options."""
    return template.min_user_price if template.user_price else template.price


def validate_pricing(
    options: Sequence[Any],
    templates: Iterable[Any],
    total: int,
    reason: Optional[str] = None,
    *,
    floor: int = DEFAULT_TOTAL_FLOOR,
) -> PricingResult:
    """
    Check a cart against its templates and price it.

    Args:
        options: submitted lines with template_id, amount, price
        templates: package option rows fetched for the referenced ids
        total: submitted pledge total (minor units)
        reason: justification, required when the total is below the regular total
        floor: smallest accepted total

    Raises:
        InvalidTemplateReference, CrossPackageSelection, AmountOutOfRange,
        TotalBelowMinimum, MissingReductionReason
    """
    if not options:
        raise InvalidTemplateReference("pledge has no options")

    requested_ids = [option.template_id for option in options]
    if len(set(requested_ids)) < len(requested_ids):
        raise InvalidTemplateReference(
            "a template is referenced more than once", template_ids=requested_ids
        )

    by_id = index_templates(templates)
    missing = [template_id for template_id in requested_ids if template_id not in by_id]
    if missing:
        raise InvalidTemplateReference(
            "one or more of the claimed templateIds are/became invalid", template_ids=missing
        )

    package_id = by_id[options[0].template_id].package_id
    for option in options:
        template = by_id[option.template_id]
        if template.package_id != package_id:
            raise CrossPackageSelection(
                "options must all be part of the same package",
                template_id=option.template_id,
                package_id=template.package_id,
                expected_package_id=package_id,
            )
        if not (template.min_amount <= option.amount <= template.max_amount):
            raise AmountOutOfRange(
                f"amount in option (templateId: {option.template_id}) out of range",
                amount=option.amount,
                min_amount=template.min_amount,
                max_amount=template.max_amount,
            )

    min_total = max(
        floor,
        sum(option.amount * unit_floor_price(by_id[option.template_id]) for option in options),
    )
    if total < min_total:
        raise TotalBelowMinimum(
            f"pledge.total ({total}) must be >= ({min_total})", total=total, min_total=min_total
        )

    regular_total = max(
        floor,
        sum(option.amount * by_id[option.template_id].price for option in options),
    )
    donation = total - regular_total

    if donation < 0 and not (reason and reason.strip()):
        raise MissingReductionReason(
            "you must provide a reason for reduced pledges", donation=donation
        )

    return PricingResult(
        package_id=package_id,
        min_total=min_total,
        regular_total=regular_total,
        donation=donation,
    )
