from decimal import Decimal

import pytest

from app.models.enums import PaymentStatus
from app.payments import ledger


async def _pending(db_session, user, course, intent_id: str = "pi_ledger"):
    return await ledger.record_pending(
        db_session,
        intent_id,
        user_id=user.user_id,
        course_id=course.course_id,
        amount=Decimal("40.00"),
        currency="usd",
    )


async def _succeed(db_session, user, course, intent_id: str = "pi_ledger"):
    return await ledger.record_success(
        db_session,
        intent_id,
        payer_id=user.user_id,
        course_id=course.course_id,
        amount=Decimal("40.00"),
        currency="usd",
    )


def test_transition_table() -> None:
    assert ledger.can_transition(PaymentStatus.PENDING, PaymentStatus.SUCCEEDED)
    assert ledger.can_transition(PaymentStatus.PENDING, PaymentStatus.FAILED)
    assert ledger.can_transition(PaymentStatus.FAILED, PaymentStatus.SUCCEEDED)
    assert ledger.can_transition(PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED)
    assert not ledger.can_transition(PaymentStatus.SUCCEEDED, PaymentStatus.FAILED)
    assert not ledger.can_transition(PaymentStatus.REFUNDED, PaymentStatus.SUCCEEDED)
    assert not ledger.can_transition(PaymentStatus.PENDING, PaymentStatus.REFUNDED)


@pytest.mark.asyncio
async def test_record_pending_is_idempotent(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    first = await _pending(db_session, user, course)
    second = await _pending(db_session, user, course)
    assert first.payment_id == second.payment_id
    assert first.status == PaymentStatus.PENDING
    assert await ledger.get_pending_payment(db_session, user.user_id, course.course_id) is first


@pytest.mark.asyncio
async def test_success_moves_pending_forward(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    pending = await _pending(db_session, user, course)
    payment = await _succeed(db_session, user, course)
    assert payment.payment_id == pending.payment_id
    assert payment.status == PaymentStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_success_inserts_when_unknown(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    payment = await _succeed(db_session, user, course, intent_id="pi_fresh")
    again = await _succeed(db_session, user, course, intent_id="pi_fresh")
    assert payment.payment_id == again.payment_id
    assert payment.status == PaymentStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_failed_payment_can_still_succeed(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    await _pending(db_session, user, course)
    failed = await ledger.record_failure(db_session, "pi_ledger", "card_declined", "Declined")
    assert failed.status == PaymentStatus.FAILED
    assert failed.provider_metadata["failure_message"] == "Declined"

    payment = await _succeed(db_session, user, course)
    assert payment.status == PaymentStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_failure_never_downgrades_success(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    await _succeed(db_session, user, course)
    payment = await ledger.record_failure(db_session, "pi_ledger", "late", "Late failure")
    assert payment.status == PaymentStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_failure_for_unknown_intent_returns_none(db_session) -> None:
    assert await ledger.record_failure(db_session, "pi_unknown", None, None) is None


@pytest.mark.asyncio
async def test_refund_transitions_once(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    await _succeed(db_session, user, course)

    refunded = await ledger.record_refund(db_session, "pi_ledger")
    assert refunded is not None
    assert refunded.status == PaymentStatus.REFUNDED
    assert "refunded_at" in refunded.provider_metadata

    assert await ledger.record_refund(db_session, "pi_ledger") is None


@pytest.mark.asyncio
async def test_refund_of_pending_is_ignored(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    pending = await _pending(db_session, user, course)
    assert await ledger.record_refund(db_session, "pi_ledger") is None
    assert pending.status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_refunded_is_terminal(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    await _succeed(db_session, user, course)
    await ledger.record_refund(db_session, "pi_ledger")
    payment = await _succeed(db_session, user, course)
    assert payment.status == PaymentStatus.REFUNDED


@pytest.mark.asyncio
async def test_dispute_only_annotates(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("40.00"))
    await _succeed(db_session, user, course)
    payment = await ledger.record_dispute(
        db_session, "pi_ledger", dispute_id="dp_9", reason="duplicate", dispute_status="warning_needs_response",
    )
    assert payment.status == PaymentStatus.SUCCEEDED
    assert payment.provider_metadata["dispute_id"] == "dp_9"
    assert payment.provider_metadata["dispute_status"] == "warning_needs_response"
