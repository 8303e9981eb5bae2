"""
Pledge submission.

Runs one atomic unit of work on the request's session:

1. Load and validate the chosen package option templates
2. Resolve the acting user (may stop with an email verification request)
3. Sync the user's name, resolve the payment alias
4. Check reduced-pledge eligibility (only when the donation is negative)
5. Insert the pledge (DRAFT) and its options, commit

The payment signature is computed after the commit so it signs the durable
pledge id. Any failure before the commit rolls back every write, including a
user created by this submission, and is re-raised to the caller.
"""
from typing import Callable, List, Optional, Union
from uuid import uuid4

from sqlalchemy import insert, select

from crowdfund.core.config import settings
from crowdfund.core.context import RequestContext
from crowdfund.core.database import package_options, pledge_options, pledges
from crowdfund.core.logging import log_event
from crowdfund.core.metrics import pledge_rollbacks_total, pledge_submissions_total
from crowdfund.features.payments.signature import SignatureProvider, get_signer
from crowdfund.features.pledges.errors import PledgeRejected
from crowdfund.features.pledges.guard import ensure_reduced_pledge_allowed
from crowdfund.features.pledges.identity import resolve_user, sync_user_profile
from crowdfund.features.pledges.payment_alias import new_alias, resolve_payment_alias
from crowdfund.features.pledges.pricing import validate_pricing
from crowdfund.models.pledge import (
    EmailVerification,
    PledgeInput,
    PledgeOptionInput,
    PledgeReceipt,
    PledgeStatus,
)


def load_templates(session, template_ids: List[str]):
    if not template_ids:
        return []
    return session.execute(
        select(package_options).where(package_options.c.id.in_(set(template_ids)))
    ).all()


def insert_pledge(session, *, user_id: str, package_id: str, total: int, donation: int, reason: Optional[str]) -> str:
    pledge_id = str(uuid4())
    session.execute(
        insert(pledges).values(
            id=pledge_id,
            user_id=user_id,
            package_id=package_id,
            total=total,
            donation=donation,
            reason=reason,
            status=PledgeStatus.DRAFT.value,
        )
    )
    return pledge_id


def insert_pledge_options(session, pledge_id: str, options: List[PledgeOptionInput]) -> None:
    session.execute(
        insert(pledge_options),
        [
            {
                "pledge_id": pledge_id,
                "template_id": option.template_id,
                "amount": option.amount,
                "price": option.price,
            }
            for option in options
        ],
    )


def _submission_summary(pledge: PledgeInput) -> dict:
    """Cart lines and amounts only, contact fields stay out of the logs."""
    return {
        "total": pledge.total,
        "reason": pledge.reason,
        "options": [option.model_dump(mode="json", by_alias=True) for option in pledge.options],
    }


def _rollback(ctx: RequestContext, pledge: PledgeInput, error: Exception) -> None:
    if isinstance(error, PledgeRejected):
        log_event(
            error.log_level,
            error.detail,
            request_id=ctx.request_id,
            user_id=ctx.user_id,
            event_type="pledge.rejected",
            error_code=error.code,
            extra={"submission": _submission_summary(pledge), **error.fields},
        )
    # A failing rollback propagates in place of the original error
    ctx.session.rollback()
    error_code = getattr(error, "code", type(error).__name__)
    pledge_rollbacks_total.inc(labels={"error_code": error_code})
    log_event(
        "info",
        "transaction rollback",
        request_id=ctx.request_id,
        user_id=ctx.user_id,
        event_type="pledge.rollback",
        error_code=error_code,
        extra={"submission": _submission_summary(pledge), "error": repr(error)},
    )


def submit_pledge(
    ctx: RequestContext,
    pledge: PledgeInput,
    *,
    signer: Optional[SignatureProvider] = None,
    alias_factory: Callable[[], str] = new_alias,
) -> Union[PledgeReceipt, EmailVerification]:
    """
    Validate, persist and sign a pledge.

    Returns:
        PledgeReceipt on success, EmailVerification when an anonymous caller
        used an email that already owns pledges (nothing is written).

    Raises:
        PledgeRejected subclasses (localized with ctx.t), or any store error
    """
    session = ctx.session
    signer = signer or get_signer()

    try:
        templates = load_templates(session, [option.template_id for option in pledge.options])
        pricing = validate_pricing(
            pledge.options,
            templates,
            pledge.total,
            pledge.reason,
            floor=settings.MIN_PLEDGE_TOTAL,
        )

        resolved = resolve_user(ctx, pledge.user)
        if resolved.email_verify:
            session.rollback()
            pledge_submissions_total.inc(labels={"outcome": "email_verify"})
            log_event(
                "info",
                "pledge email already has pledges, verification required",
                request_id=ctx.request_id,
                event_type="pledge.email_verify",
            )
            return EmailVerification()

        user = sync_user_profile(ctx, resolved.user, pledge.user)
        alias = resolve_payment_alias(
            session,
            user.id,
            is_session_user=resolved.is_session_user,
            alias_factory=alias_factory,
        )

        if pricing.reduced:
            ensure_reduced_pledge_allowed(session, user.id)

        pledge_id = insert_pledge(
            session,
            user_id=user.id,
            package_id=pricing.package_id,
            total=pledge.total,
            donation=pricing.donation,
            reason=pledge.reason,
        )
        insert_pledge_options(session, pledge_id, pledge.options)

        session.commit()
    except Exception as error:
        if isinstance(error, PledgeRejected):
            error.localize(ctx.t)
        _rollback(ctx, pledge, error)
        pledge_submissions_total.inc(labels={"outcome": "rejected"})
        raise

    log_event(
        "info",
        "pledge.committed",
        request_id=ctx.request_id,
        user_id=user.id,
        pledge_id=pledge_id,
        event_type="pledge.committed",
        extra={"total": pledge.total, "donation": pricing.donation, "created_user": resolved.created},
    )

    # Runs after commit; a failure leaves the DRAFT pledge in place
    payment_signature = signer.sign({
        "orderId": pledge_id,
        "amount": pledge.total,
        "alias": alias,
        "userId": user.id,
    })
    pledge_submissions_total.inc(labels={"outcome": "committed"})

    return PledgeReceipt(
        pledge_id=pledge_id,
        user_id=user.id,
        payment_signature=payment_signature,
        payment_alias=alias,
    )
