"""
Pricing validation over in-memory templates.

No database: templates are plain namespaces with the package option columns.
"""
from types import SimpleNamespace

import pytest

from crowdfund.features.pledges.errors import (
    AmountOutOfRange,
    CrossPackageSelection,
    InvalidTemplateReference,
    MissingReductionReason,
    TotalBelowMinimum,
)
from crowdfund.features.pledges.pricing import unit_floor_price, validate_pricing
from crowdfund.models.pledge import PledgeOptionInput


def template(id, package_id="pkg-1", min_amount=0, max_amount=10, price=1000, user_price=False, min_user_price=0):
    return SimpleNamespace(
        id=id,
        package_id=package_id,
        min_amount=min_amount,
        max_amount=max_amount,
        price=price,
        user_price=user_price,
        min_user_price=min_user_price,
    )


def option(template_id, amount, price=0):
    return PledgeOptionInput(template_id=template_id, amount=amount, price=price)


A = template("A", min_amount=1, max_amount=5, price=1000)
B = template("B", min_amount=1, max_amount=3, price=500)
A_USER_PRICED = template("A", min_amount=1, max_amount=5, price=1000, user_price=True, min_user_price=800)


class TestTotals:
    def test_regular_cart_has_no_donation(self):
        result = validate_pricing([option("A", 3, 1000), option("B", 1, 500)], [A, B], 3500)
        assert result.package_id == "pkg-1"
        assert result.min_total == 3500
        assert result.regular_total == 3500
        assert result.donation == 0
        assert result.reduced is False

    def test_reduced_cart_needs_reason(self):
        options = [option("A", 3, 1000), option("B", 1, 500)]
        with pytest.raises(MissingReductionReason):
            validate_pricing(options, [A_USER_PRICED, B], 3000)

    def test_reduced_cart_with_reason(self):
        options = [option("A", 3, 1000), option("B", 1, 500)]
        result = validate_pricing(options, [A_USER_PRICED, B], 3000, "Student")
        assert result.min_total == 2900
        assert result.regular_total == 3500
        assert result.donation == -500
        assert result.reduced is True

    def test_blank_reason_counts_as_missing(self):
        options = [option("A", 3, 1000), option("B", 1, 500)]
        with pytest.raises(MissingReductionReason):
            validate_pricing(options, [A_USER_PRICED, B], 3000, "   ")

    def test_overpaying_is_a_donation(self):
        result = validate_pricing([option("A", 1, 1000)], [A], 1500)
        assert result.donation == 500

    def test_total_below_user_price_floor_fails(self):
        options = [option("A", 3, 1000), option("B", 1, 500)]
        with pytest.raises(TotalBelowMinimum) as exc:
            validate_pricing(options, [A_USER_PRICED, B], 2899, "Student")
        assert exc.value.fields == {"total": 2899, "min_total": 2900}

    def test_without_user_price_the_regular_price_is_the_floor(self):
        with pytest.raises(TotalBelowMinimum):
            validate_pricing([option("A", 3, 1000)], [A], 2999, "Student")

    def test_floor_applies_to_small_carts(self):
        free = template("F", min_amount=0, max_amount=1, price=0)
        with pytest.raises(TotalBelowMinimum):
            validate_pricing([option("F", 1)], [free], 99)

        result = validate_pricing([option("F", 1)], [free], 100)
        assert result.min_total == 100
        assert result.regular_total == 100
        assert result.donation == 0

    def test_floor_is_configurable(self):
        free = template("F", min_amount=0, max_amount=1, price=0)
        result = validate_pricing([option("F", 1)], [free], 0, floor=0)
        assert result.min_total == 0

    def test_submitted_price_is_not_checked(self):
        result = validate_pricing([option("A", 1, price=1)], [A], 1000)
        assert result.donation == 0

    def test_unit_floor_price(self):
        assert unit_floor_price(A) == 1000
        assert unit_floor_price(A_USER_PRICED) == 800


class TestAmountBounds:
    @pytest.mark.parametrize("amount", [1, 5])
    def test_bounds_are_inclusive(self, amount):
        result = validate_pricing([option("A", amount)], [A], amount * 1000)
        assert result.donation == 0

    @pytest.mark.parametrize("amount", [0, 6])
    def test_outside_bounds_fails(self, amount):
        with pytest.raises(AmountOutOfRange) as exc:
            validate_pricing([option("A", amount)], [A], 100000)
        assert exc.value.fields["min_amount"] == 1
        assert exc.value.fields["max_amount"] == 5


class TestTemplateReferences:
    def test_missing_template_fails(self):
        with pytest.raises(InvalidTemplateReference) as exc:
            validate_pricing([option("A", 1), option("GONE", 1)], [A], 5000)
        assert exc.value.fields["template_ids"] == ["GONE"]

    def test_duplicate_template_fails(self):
        with pytest.raises(InvalidTemplateReference):
            validate_pricing([option("A", 1), option("A", 2)], [A], 5000)

    def test_empty_cart_fails(self):
        with pytest.raises(InvalidTemplateReference):
            validate_pricing([], [A], 5000)

    @pytest.mark.parametrize("amount", [0, 1, 100])
    def test_cross_package_fails_regardless_of_amounts(self, amount):
        other = template("C", package_id="pkg-2", min_amount=0, max_amount=1, price=10)
        with pytest.raises(CrossPackageSelection):
            validate_pricing([option("A", 1), option("C", amount)], [A, other], 100000)

    def test_errors_share_the_generic_message_key(self):
        with pytest.raises(InvalidTemplateReference) as exc:
            validate_pricing([option("GONE", 1)], [], 100)
        assert exc.value.message_key == "api/unexpected"
        assert exc.value.status_code == 400
