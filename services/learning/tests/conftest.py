import hashlib
import hmac
import json
import time
import uuid
from collections.abc import AsyncGenerator, Callable
from decimal import Decimal

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.database import set_session_factory
from app.dependencies import get_replay_guard, get_settings, get_stripe_gateway
from app.main import create_app
from app.models import AppUser, Course, CourseSection, Lesson, Quiz
from app.rate_limit import limiter
from app.webhooks.replay_guard import MemoryReplayGuard
from shared.database.engine import Base

TEST_DATABASE_URL = "sqlite+aiosqlite://"
JWT_SECRET = "test-jwt-secret"
WEBHOOK_SECRET = "whsec_test_secret"


def build_test_settings() -> Settings:
    return Settings(
        _env_file=None,
        learning_database_url=TEST_DATABASE_URL,
        jwt_secret=JWT_SECRET,
        stripe_secret_key="sk_test_dummy",
        stripe_webhook_secret=WEBHOOK_SECRET,
        replay_guard_backend="memory",
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's implicit transactions break SAVEPOINT; take over BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    set_session_factory(factory)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session) -> Callable:
    async def _make(*, is_active: bool = True, email: str | None = None) -> AppUser:
        user = AppUser(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            full_name="Test Student",
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_course(db_session) -> Callable:
    async def _make(
        *,
        price: Decimal = Decimal("0.00"),
        discount_price: Decimal | None = None,
        currency: str = "usd",
        lesson_count: int = 4,
        sections: int = 2,
        is_published: bool = True,
        enrollment_count: int = 0,
    ) -> tuple[Course, list[Lesson]]:
        slug = f"course-{uuid.uuid4().hex[:8]}"
        course = Course(
            title=f"Course {slug}",
            slug=slug,
            price=price,
            discount_price=discount_price,
            currency=currency,
            is_published=is_published,
            enrollment_count=enrollment_count,
        )
        db_session.add(course)
        await db_session.flush()

        section_rows = [
            CourseSection(course_id=course.course_id, title=f"Section {i + 1}", sort_order=i)
            for i in range(sections)
        ]
        db_session.add_all(section_rows)
        await db_session.flush()

        lessons = [
            Lesson(
                section_id=section_rows[i % sections].section_id,
                title=f"Lesson {i + 1}",
                sort_order=i,
            )
            for i in range(lesson_count)
        ]
        db_session.add_all(lessons)
        await db_session.commit()
        return course, lessons

    return _make


@pytest.fixture
def make_quiz(db_session) -> Callable:
    async def _make(course: Course, *, max_attempts: int | None = 3, passing_score: int = 70) -> Quiz:
        section = CourseSection(course_id=course.course_id, title="Quiz section", sort_order=99)
        db_session.add(section)
        await db_session.flush()
        quiz = Quiz(
            course_id=course.course_id,
            section_id=section.section_id,
            title="Checkpoint quiz",
            max_attempts=max_attempts,
            passing_score=passing_score,
        )
        db_session.add(quiz)
        await db_session.commit()
        return quiz

    return _make


# ---------------------------------------------------------------------------
# Auth + signing helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    settings = build_test_settings()

    def _headers(user_id: uuid.UUID, roles: tuple[str, ...] = ("student",)) -> dict[str, str]:
        now = int(time.time())
        token = jwt.encode(
            {
                "sub": str(user_id),
                "roles": list(roles),
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "iat": now,
                "exp": now + 3600,
            },
            JWT_SECRET,
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a ``stripe-signature`` header the way Stripe does."""
    ts = timestamp if timestamp is not None else int(time.time())
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


@pytest.fixture
def stripe_event() -> Callable[..., bytes]:
    def _build(
        event_type: str,
        obj: dict,
        *,
        event_id: str | None = None,
        created: int | None = None,
    ) -> bytes:
        body = {
            "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
            "object": "event",
            "type": event_type,
            "created": created if created is not None else int(time.time()),
            "livemode": False,
            "data": {"object": obj},
        }
        return json.dumps(body).encode("utf-8")

    return _build


@pytest.fixture
def signer() -> Callable[..., str]:
    return sign_payload


@pytest.fixture
def webhook_secret() -> str:
    return WEBHOOK_SECRET


# ---------------------------------------------------------------------------
# Stripe API double
# ---------------------------------------------------------------------------


class FakeStripeGateway:
    """Records calls instead of reaching the Stripe API."""

    def __init__(self) -> None:
        self.customers: list[dict] = []
        self.intents: dict[str, dict] = {}
        self.idempotency_keys: list[str] = []

    async def create_customer(self, *, email: str, name: str | None, metadata: dict[str, str]) -> str:
        customer_id = f"cus_{uuid.uuid4().hex[:12]}"
        self.customers.append({"id": customer_id, "email": email, "metadata": metadata})
        return customer_id

    async def create_payment_intent(self, *, amount_minor: int, currency: str, customer_id: str,
                                    description: str, statement_descriptor_suffix: str,
                                    metadata: dict[str, str], idempotency_key: str) -> dict:
        intent_id = f"pi_{uuid.uuid4().hex[:16]}"
        intent = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret_test",
            "status": "requires_payment_method",
            "amount": amount_minor,
            "currency": currency,
            "metadata": metadata,
        }
        self.intents[intent_id] = intent
        self.idempotency_keys.append(idempotency_key)
        return {k: intent[k] for k in ("id", "client_secret", "status")}

    async def retrieve_payment_intent(self, intent_id: str) -> dict:
        intent = self.intents[intent_id]
        return {k: intent[k] for k in ("id", "client_secret", "status")}


@pytest.fixture
def fake_gateway() -> FakeStripeGateway:
    return FakeStripeGateway()


@pytest.fixture
def replay_guard() -> MemoryReplayGuard:
    return MemoryReplayGuard(ttl_secs=300)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
def app_settings() -> Settings:
    return build_test_settings()


@pytest_asyncio.fixture
async def async_client(
    session_factory, app_settings, replay_guard, fake_gateway,
) -> AsyncGenerator[AsyncClient, None]:
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: app_settings
    app.dependency_overrides[get_replay_guard] = lambda: replay_guard
    app.dependency_overrides[get_stripe_gateway] = lambda: fake_gateway
    limiter.enabled = False
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    limiter.enabled = True
