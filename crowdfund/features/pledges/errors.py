"""
Pledge error taxonomy.

Every rejection carries an internal `detail` and diagnostic `fields` that are
logged server-side, and a public `message_key` that is translated before the
error reaches the caller. Validation failures all share the generic
`api/unexpected` message so pricing internals are not leaked.
"""
from typing import Any

from crowdfund.core.errors import AppError
from crowdfund.core.i18n import Translator


class PledgeRejected(AppError):
    code = "pledge_rejected"
    status_code = 400
    message_key = "api/unexpected"
    log_level = "error"

    def __init__(self, detail: str, **fields: Any):
        super().__init__(self.message_key)
        self.detail = detail
        self.fields = fields

    def localize(self, t: Translator) -> "PledgeRejected":
        self.message = t(self.message_key)
        self.args = (self.message,)
        return self


class InvalidTemplateReference(PledgeRejected):
    code = "invalid_template_reference"


class CrossPackageSelection(PledgeRejected):
    code = "cross_package_selection"


class AmountOutOfRange(PledgeRejected):
    code = "amount_out_of_range"


class TotalBelowMinimum(PledgeRejected):
    code = "total_below_minimum"


class MissingReductionReason(PledgeRejected):
    code = "missing_reduction_reason"


class IdentityMismatch(PledgeRejected):
    code = "identity_mismatch"


class ReducedPledgeAlreadyUsed(PledgeRejected):
    code = "reduced_pledge_already_used"
    status_code = 409
    message_key = "api/membership/reduced/alreadyHas"
    log_level = "info"


class PledgeNotFound(PledgeRejected):
    code = "not_found"
    status_code = 404
    message_key = "api/pledge/notFound"
    log_level = "info"


class PledgeAlreadyPaid(PledgeRejected):
    code = "pledge_already_paid"
    status_code = 409
    message_key = "api/pledge/alreadyPaid"


class Unauthorized(PledgeRejected):
    code = "unauthorized"
    status_code = 403
    message_key = "api/unauthorized"
