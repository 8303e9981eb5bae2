"""
Pledge submission against an in-memory database.

Covers the unit of work end to end: pricing, user resolution, alias,
reduced-pledge guard, commit/rollback and the post-commit signature.
"""
import logging

import pytest
from sqlalchemy import func, insert, select

from crowdfund.core.database import payment_sources, pledge_options, pledges, users
from crowdfund.core.metrics import pledge_rollbacks_total, pledge_submissions_total
from crowdfund.features.payments.signature import PaymentSignatureError
from crowdfund.features.pledges import service
from crowdfund.features.pledges.errors import (
    AmountOutOfRange,
    IdentityMismatch,
    MissingReductionReason,
    ReducedPledgeAlreadyUsed,
)
from crowdfund.features.pledges.service import submit_pledge
from crowdfund.models.pledge import (
    EmailVerification,
    PledgeInput,
    PledgeOptionInput,
    PledgeReceipt,
    PledgeUserInput,
)
from crowdfund.tests.factories import make_pledge, make_user


def build_pledge(lines, total, *, email="anna@example.com", first_name="Anna", last_name="Muster", reason=None):
    return PledgeInput(
        total=total,
        reason=reason,
        user=PledgeUserInput(email=email, first_name=first_name, last_name=last_name),
        options=[
            PledgeOptionInput(template_id=template_id, amount=amount, price=price)
            for template_id, amount, price in lines
        ],
    )


def count(session, table, *where):
    query = select(func.count()).select_from(table)
    if where:
        query = query.where(*where)
    return session.execute(query).scalar_one()


def abo_cart(catalog, a=3, b=1):
    return [(catalog.option_a, a, 1000), (catalog.option_b, b, 500)]


class TestSubmitPledge:
    def test_anonymous_submission_creates_user_and_draft_pledge(self, db_session, make_ctx, catalog, fake_signer):
        receipt = submit_pledge(
            make_ctx(),
            build_pledge(abo_cart(catalog), 3500),
            signer=fake_signer,
            alias_factory=lambda: "alias-1",
        )

        assert isinstance(receipt, PledgeReceipt)
        assert receipt.payment_signature == "SIGNED"
        assert receipt.payment_alias == "alias-1"

        pledge = db_session.execute(select(pledges).where(pledges.c.id == receipt.pledge_id)).first()
        assert pledge.user_id == receipt.user_id
        assert pledge.package_id == catalog.abo
        assert pledge.total == 3500
        assert pledge.donation == 0
        assert pledge.status == "DRAFT"
        assert count(db_session, pledge_options, pledge_options.c.pledge_id == receipt.pledge_id) == 2

        user = db_session.execute(select(users).where(users.c.id == receipt.user_id)).first()
        assert user.email == "anna@example.com"
        assert user.first_name == "Anna"
        assert user.verified is False

        assert fake_signer.orders == [{
            "orderId": receipt.pledge_id,
            "amount": 3500,
            "alias": "alias-1",
            "userId": receipt.user_id,
        }]
        assert pledge_submissions_total.value({"outcome": "committed"}) == 1

    def test_persisted_lines_keep_submitted_prices(self, db_session, make_ctx, catalog, fake_signer):
        receipt = submit_pledge(
            make_ctx(), build_pledge([(catalog.option_a, 2, 1234)], 2000), signer=fake_signer,
        )
        line = db_session.execute(
            select(pledge_options).where(pledge_options.c.pledge_id == receipt.pledge_id)
        ).first()
        assert line.template_id == catalog.option_a
        assert line.amount == 2
        assert line.price == 1234

    def test_donation_is_stored(self, db_session, make_ctx, catalog, fake_signer):
        receipt = submit_pledge(make_ctx(), build_pledge(abo_cart(catalog), 5000), signer=fake_signer)
        pledge = db_session.execute(select(pledges).where(pledges.c.id == receipt.pledge_id)).first()
        assert pledge.donation == 1500

    def test_validation_failure_writes_nothing(self, db_session, make_ctx, catalog, fake_signer):
        with pytest.raises(AmountOutOfRange) as exc:
            submit_pledge(make_ctx(), build_pledge(abo_cart(catalog, a=6), 6500), signer=fake_signer)

        assert exc.value.message == "An unexpected error occurred."
        assert count(db_session, pledges) == 0
        assert count(db_session, users) == 0
        assert fake_signer.orders == []
        assert pledge_rollbacks_total.value({"error_code": "amount_out_of_range"}) == 1

    def test_messages_follow_the_request_locale(self, make_ctx, catalog, fake_signer):
        with pytest.raises(AmountOutOfRange) as exc:
            submit_pledge(make_ctx(locale="de"), build_pledge(abo_cart(catalog, a=6), 6500), signer=fake_signer)
        assert exc.value.message == "Ein unerwarteter Fehler ist aufgetreten."

    def test_localized_error_string_matches_message(self, make_ctx, catalog, fake_signer):
        with pytest.raises(AmountOutOfRange) as exc:
            submit_pledge(make_ctx(locale="de"), build_pledge(abo_cart(catalog, a=6), 6500), signer=fake_signer)

        assert str(exc.value) == "Ein unerwarteter Fehler ist aufgetreten."
        assert "api/unexpected" not in repr(exc.value)

    def test_rejection_logs_leave_out_contact_fields(self, make_ctx, catalog, fake_signer, caplog):
        pledge = build_pledge(abo_cart(catalog, a=6), 6500, email="private@example.com", first_name="Priya")
        with caplog.at_level(logging.INFO, logger="crowdfund"):
            with pytest.raises(AmountOutOfRange):
                submit_pledge(make_ctx(), pledge, signer=fake_signer)

        records = [r for r in caplog.records if getattr(r, "event_type", None) in ("pledge.rejected", "pledge.rollback")]
        assert {r.event_type for r in records} == {"pledge.rejected", "pledge.rollback"}
        for record in records:
            assert catalog.option_a in record.submission
            assert "private@example.com" not in record.submission
            assert "Priya" not in record.submission
        rollback = next(r for r in records if r.event_type == "pledge.rollback")
        assert "An unexpected error occurred." in rollback.error


class TestUserResolution:
    def test_known_email_with_pledges_requires_verification(self, db_session, make_ctx, catalog, fake_signer):
        owner = make_user(db_session)
        make_pledge(db_session, owner.id, catalog.donate, [(catalog.option_d, 1, 100)])

        result = submit_pledge(
            make_ctx(), build_pledge(abo_cart(catalog), 3500, first_name="Other"), signer=fake_signer,
        )

        assert result == EmailVerification(email_verify=True)
        assert count(db_session, pledges) == 1
        assert fake_signer.orders == []
        # Name is not synced for an unverified claim
        assert db_session.execute(select(users.c.first_name).where(users.c.id == owner.id)).scalar_one() == "Anna"

    def test_known_email_without_pledges_is_reused(self, db_session, make_ctx, catalog, fake_signer):
        existing = make_user(db_session, first_name="Ana", last_name="M.")

        receipt = submit_pledge(make_ctx(), build_pledge(abo_cart(catalog), 3500), signer=fake_signer)

        assert receipt.user_id == existing.id
        assert count(db_session, users) == 1
        user = db_session.execute(select(users).where(users.c.id == existing.id)).first()
        assert (user.first_name, user.last_name) == ("Anna", "Muster")

    def test_session_user_must_match_email(self, db_session, make_ctx, catalog, fake_signer):
        session_user = make_user(db_session, email="bob@example.com", first_name="Bob")

        with pytest.raises(IdentityMismatch) as exc:
            submit_pledge(make_ctx(user=session_user), build_pledge(abo_cart(catalog), 3500), signer=fake_signer)

        assert exc.value.status_code == 400
        assert exc.value.message == "An unexpected error occurred."
        assert count(db_session, pledges) == 0

    def test_session_user_name_is_synced(self, db_session, make_ctx, catalog, fake_signer):
        session_user = make_user(db_session, first_name="Anne", last_name="Old")

        receipt = submit_pledge(
            make_ctx(user=session_user), build_pledge(abo_cart(catalog), 3500), signer=fake_signer,
        )

        assert receipt.user_id == session_user.id
        user = db_session.execute(select(users).where(users.c.id == session_user.id)).first()
        assert (user.first_name, user.last_name) == ("Anna", "Muster")


class TestPaymentAlias:
    def _store_alias(self, session, user_id, alias):
        session.execute(insert(payment_sources).values(
            id=f"source-{user_id}", user_id=user_id, method="POSTFINANCECARD", psp_id=alias,
        ))
        session.commit()

    def test_session_user_reuses_stored_alias(self, db_session, make_ctx, catalog, fake_signer):
        session_user = make_user(db_session)
        self._store_alias(db_session, session_user.id, "stored-alias")

        receipt = submit_pledge(
            make_ctx(user=session_user),
            build_pledge(abo_cart(catalog), 3500),
            signer=fake_signer,
            alias_factory=lambda: "fresh-alias",
        )

        assert receipt.payment_alias == "stored-alias"
        assert fake_signer.orders[0]["alias"] == "stored-alias"

    def test_anonymous_user_gets_fresh_alias(self, db_session, make_ctx, catalog, fake_signer):
        existing = make_user(db_session)
        self._store_alias(db_session, existing.id, "stored-alias")

        receipt = submit_pledge(
            make_ctx(),
            build_pledge(abo_cart(catalog), 3500),
            signer=fake_signer,
            alias_factory=lambda: "fresh-alias",
        )

        assert receipt.user_id == existing.id
        assert receipt.payment_alias == "fresh-alias"

    def test_default_alias_is_unique(self, make_ctx, catalog, fake_signer):
        first = submit_pledge(make_ctx(), build_pledge(abo_cart(catalog), 3500), signer=fake_signer)
        second = submit_pledge(
            make_ctx(), build_pledge(abo_cart(catalog), 3500, email="carla@example.com"), signer=fake_signer,
        )
        assert first.payment_alias != second.payment_alias


class TestReducedPledges:
    def test_reduced_without_reason_fails(self, db_session, make_ctx, catalog, fake_signer):
        with pytest.raises(MissingReductionReason):
            submit_pledge(make_ctx(), build_pledge(abo_cart(catalog), 3000), signer=fake_signer)
        assert count(db_session, pledges) == 0

    def test_reduced_with_reason_succeeds(self, db_session, make_ctx, catalog, fake_signer):
        receipt = submit_pledge(
            make_ctx(), build_pledge(abo_cart(catalog), 3000, reason="Student"), signer=fake_signer,
        )
        pledge = db_session.execute(select(pledges).where(pledges.c.id == receipt.pledge_id)).first()
        assert pledge.donation == -500
        assert pledge.reason == "Student"

    def test_second_reduced_pledge_fails(self, db_session, make_ctx, catalog, fake_signer):
        first = submit_pledge(
            make_ctx(), build_pledge(abo_cart(catalog), 3000, reason="Student"), signer=fake_signer,
        )
        user = db_session.execute(select(users).where(users.c.id == first.user_id)).first()

        with pytest.raises(ReducedPledgeAlreadyUsed) as exc:
            submit_pledge(
                make_ctx(user=user), build_pledge(abo_cart(catalog), 3000, reason="Still a student"),
                signer=fake_signer,
            )

        assert exc.value.status_code == 409
        assert exc.value.message == (
            "You already have a membership. A reduced price is only available on your first pledge."
        )
        assert count(db_session, pledges, pledges.c.user_id == user.id) == 1

    def test_regular_pledge_after_reduced_is_allowed(self, db_session, make_ctx, catalog, fake_signer):
        first = submit_pledge(
            make_ctx(), build_pledge(abo_cart(catalog), 3000, reason="Student"), signer=fake_signer,
        )
        user = db_session.execute(select(users).where(users.c.id == first.user_id)).first()

        receipt = submit_pledge(make_ctx(user=user), build_pledge(abo_cart(catalog), 3500), signer=fake_signer)
        assert receipt.user_id == user.id

    def test_donation_only_history_allows_reduction(self, db_session, make_ctx, catalog, fake_signer):
        user = make_user(db_session)
        make_pledge(db_session, user.id, catalog.donate, [(catalog.option_d, 1, 100)])

        receipt = submit_pledge(
            make_ctx(user=user), build_pledge(abo_cart(catalog), 3000, reason="Student"), signer=fake_signer,
        )
        assert count(db_session, pledges, pledges.c.user_id == user.id) == 2
        assert receipt.user_id == user.id


class TestTransactionBoundary:
    def test_store_failure_after_pledge_insert_rolls_back_everything(
        self, db_session, make_ctx, catalog, fake_signer, monkeypatch
    ):
        def failing_insert(session, pledge_id, options):
            raise RuntimeError("pledge_options insert failed")

        monkeypatch.setattr(service, "insert_pledge_options", failing_insert)

        with pytest.raises(RuntimeError):
            submit_pledge(make_ctx(), build_pledge(abo_cart(catalog), 3500), signer=fake_signer)

        assert count(db_session, pledges) == 0
        assert count(db_session, pledge_options) == 0
        assert count(db_session, users, users.c.email == "anna@example.com") == 0
        assert fake_signer.orders == []
        assert pledge_rollbacks_total.value({"error_code": "RuntimeError"}) == 1

    def test_failing_rollback_propagates(self, db_session, make_ctx, catalog, fake_signer, monkeypatch):
        def broken_rollback():
            raise RuntimeError("rollback failed")

        monkeypatch.setattr(db_session, "rollback", broken_rollback)

        with pytest.raises(RuntimeError, match="rollback failed"):
            submit_pledge(make_ctx(), build_pledge(abo_cart(catalog, a=6), 6500), signer=fake_signer)

    def test_signature_failure_keeps_committed_draft(self, db_session, make_ctx, catalog):
        class BrokenSigner:
            def sign(self, order):
                raise PaymentSignatureError("signer unavailable")

        with pytest.raises(PaymentSignatureError):
            submit_pledge(make_ctx(), build_pledge(abo_cart(catalog), 3500), signer=BrokenSigner())

        drafts = db_session.execute(select(pledges)).all()
        assert len(drafts) == 1
        assert drafts[0].status == "DRAFT"

    def test_committed_totals_match_pricing(self, db_session, make_ctx, catalog, fake_signer):
        receipt = submit_pledge(
            make_ctx(), build_pledge(abo_cart(catalog, a=2, b=3), 4000), signer=fake_signer,
        )
        pledge = db_session.execute(select(pledges).where(pledges.c.id == receipt.pledge_id)).first()
        assert pledge.total == 4000
        assert pledge.donation == 4000 - (2 * 1000 + 3 * 500)
