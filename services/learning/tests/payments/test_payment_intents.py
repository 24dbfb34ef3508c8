import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.models import AppUser, Enrollment, PaymentRecord
from app.models.enums import EnrollmentStatus, PaymentStatus
from app.payments.service import idempotency_key, to_minor_units

INTENTS_URL = "/api/v1/payments/intents"


def test_minor_units_rounding() -> None:
    assert to_minor_units(Decimal("49.99")) == 4999
    assert to_minor_units(Decimal("10")) == 1000


def test_idempotency_key_is_stable_within_a_minute() -> None:
    user_id, course_id = uuid.uuid4(), uuid.uuid4()
    assert idempotency_key(user_id, course_id, now=120.0) == idempotency_key(user_id, course_id, now=179.9)
    assert idempotency_key(user_id, course_id, now=120.0) != idempotency_key(user_id, course_id, now=180.0)


@pytest.mark.asyncio
async def test_create_intent_records_pending_payment(
    async_client, auth_headers, fake_gateway, session_factory, make_user, make_course,
) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("59.00"), discount_price=Decimal("49.00"))

    response = await async_client.post(
        INTENTS_URL,
        json={"course_id": str(course.course_id), "expected_price": "49.00"},
        headers=auth_headers(user.user_id),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["existing"] is False
    assert Decimal(data["amount"]) == Decimal("49.00")
    assert data["client_secret"].endswith("_secret_test")

    (intent,) = fake_gateway.intents.values()
    assert intent["amount"] == 4900
    assert intent["metadata"]["courseId"] == str(course.course_id)
    assert intent["metadata"]["appUserId"] == str(user.user_id)
    assert len(fake_gateway.customers) == 1

    async with session_factory() as s:
        payment = (await s.execute(
            select(PaymentRecord).where(PaymentRecord.provider_intent_id == intent["id"])
        )).scalar_one()
        assert payment.status == PaymentStatus.PENDING
        assert str(payment.payment_id) == data["payment_id"]
        stored_user = await s.get(AppUser, user.user_id)
        assert stored_user.stripe_customer_id == fake_gateway.customers[0]["id"]
        # No enrollment until the provider confirms payment
        enrollments = (await s.execute(
            select(Enrollment).where(Enrollment.user_id == user.user_id)
        )).scalars().all()
        assert enrollments == []


@pytest.mark.asyncio
async def test_open_intent_is_reused(
    async_client, auth_headers, fake_gateway, make_user, make_course,
) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("20.00"))
    headers = auth_headers(user.user_id)

    first = await async_client.post(INTENTS_URL, json={"course_id": str(course.course_id)}, headers=headers)
    second = await async_client.post(INTENTS_URL, json={"course_id": str(course.course_id)}, headers=headers)
    assert second.status_code == 200
    assert second.json()["existing"] is True
    assert second.json()["payment_id"] == first.json()["payment_id"]
    assert len(fake_gateway.intents) == 1


@pytest.mark.asyncio
async def test_settled_intent_is_not_reused(
    async_client, auth_headers, fake_gateway, make_user, make_course,
) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("20.00"))
    headers = auth_headers(user.user_id)

    await async_client.post(INTENTS_URL, json={"course_id": str(course.course_id)}, headers=headers)
    (intent,) = fake_gateway.intents.values()
    intent["status"] = "processing"

    second = await async_client.post(INTENTS_URL, json={"course_id": str(course.course_id)}, headers=headers)
    assert second.json()["existing"] is False
    assert len(fake_gateway.intents) == 2
    # Customer created once and reused
    assert len(fake_gateway.customers) == 1


@pytest.mark.asyncio
async def test_free_course_rejected(async_client, auth_headers, fake_gateway, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("0.00"))
    response = await async_client.post(
        INTENTS_URL, json={"course_id": str(course.course_id)}, headers=auth_headers(user.user_id),
    )
    assert response.status_code == 400
    assert fake_gateway.intents == {}


@pytest.mark.asyncio
async def test_price_mismatch_forbidden(async_client, auth_headers, fake_gateway, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("99.00"))
    response = await async_client.post(
        INTENTS_URL,
        json={"course_id": str(course.course_id), "expected_price": "9.99"},
        headers=auth_headers(user.user_id),
    )
    assert response.status_code == 403
    assert fake_gateway.intents == {}


@pytest.mark.asyncio
async def test_inactive_account_forbidden(async_client, auth_headers, make_user, make_course) -> None:
    user = await make_user(is_active=False)
    course, _ = await make_course(price=Decimal("15.00"))
    response = await async_client.post(
        INTENTS_URL, json={"course_id": str(course.course_id)}, headers=auth_headers(user.user_id),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_already_enrolled_conflict(
    async_client, auth_headers, db_session, make_user, make_course,
) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("15.00"))
    db_session.add(Enrollment(
        user_id=user.user_id, course_id=course.course_id, status=EnrollmentStatus.ACTIVE,
    ))
    await db_session.commit()

    response = await async_client.post(
        INTENTS_URL, json={"course_id": str(course.course_id)}, headers=auth_headers(user.user_id),
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_unpublished_course_rejected(async_client, auth_headers, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("15.00"), is_published=False)
    response = await async_client.post(
        INTENTS_URL, json={"course_id": str(course.course_id)}, headers=auth_headers(user.user_id),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_requires_authentication(async_client, make_course) -> None:
    course, _ = await make_course(price=Decimal("15.00"))
    response = await async_client.post(INTENTS_URL, json={"course_id": str(course.course_id)})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_intent_is_charged_in_course_currency(
    async_client, auth_headers, fake_gateway, session_factory, make_user, make_course,
) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("30.00"), currency="EUR")

    response = await async_client.post(
        INTENTS_URL,
        json={"course_id": str(course.course_id)},
        headers=auth_headers(user.user_id),
    )
    assert response.status_code == 200
    assert response.json()["currency"] == "eur"

    (intent,) = fake_gateway.intents.values()
    assert intent["currency"] == "eur"
    async with session_factory() as s:
        payment = (await s.execute(
            select(PaymentRecord).where(PaymentRecord.provider_intent_id == intent["id"])
        )).scalar_one()
        assert payment.currency == "eur"
