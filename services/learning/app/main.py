import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

# Configure application logging so security and audit logs are visible
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.admin.router import router as admin_router
from app.assessment.router import router as assessment_router
from app.certificates.router import router as certificates_router
from app.database import dispose_db, init_db
from app.dependencies import get_settings
from app.lms.router import router as lms_router
from app.payments.router import router as payments_router
from app.rate_limit import limiter
from app.webhooks.replay_guard import MemoryReplayGuard, RedisReplayGuard
from app.webhooks.router import router as webhooks_router
from shared.middleware import error_envelope_middleware, request_context_middleware

logger = logging.getLogger(__name__)


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## CourseHub Learning Service

Payments, enrollments and learner progress.

* **Webhooks**: signed Stripe events drive the payment ledger and paid enrollments.
* **Payments**: payment intents for paid courses.
* **Enrollments**: free enrollment, listing, status checks and cancellation.
* **Progress**: lesson completion and course completion percentage.
* **Assessments**: quiz attempts with per-quiz attempt limits.
* **Certificates**: public credential verification.

### Authentication
All student endpoints require:
```
Authorization: Bearer <access_token>
```
Tokens are issued by the identity provider. The webhook endpoint is
authenticated by its Stripe signature instead.
"""

_TAGS_METADATA = [
    {"name": "Webhooks", "description": "Payment provider callbacks."},
    {"name": "Payments", "description": "Payment intents for paid courses."},
    {"name": "LMS", "description": "Enrollments and learner progress."},
    {"name": "Assessments", "description": "Quiz attempts."},
    {"name": "Certificates", "description": "Public certificate verification."},
    {"name": "Admin", "description": "Operational maintenance."},
]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str


# ── App factory ───────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db(settings.learning_database_url)

    if settings.replay_guard_backend == "redis":
        app.state.replay_guard = RedisReplayGuard.from_url(settings.redis_url, settings.replay_guard_ttl_secs)
    else:
        logger.warning("Using in-memory webhook replay guard; not shared across workers")
        app.state.replay_guard = MemoryReplayGuard(settings.replay_guard_ttl_secs)

    if not settings.stripe_webhook_secret:
        logger.critical("STRIPE_WEBHOOK_SECRET is not configured; webhooks will be rejected")

    yield

    if isinstance(app.state.replay_guard, RedisReplayGuard):
        await app.state.replay_guard.aclose()
    await dispose_db()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="CourseHub Learning Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Attach rate limiter state before middleware
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Middleware (applied in reverse-registration order: last added = outermost)
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_context_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(webhooks_router, prefix="/api/v1")
    app.include_router(payments_router, prefix="/api/v1")
    app.include_router(lms_router, prefix="/api/v1")
    app.include_router(assessment_router, prefix="/api/v1")
    app.include_router(certificates_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse, tags=["health"], include_in_schema=True)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="learning")

    return app


app = create_app()
