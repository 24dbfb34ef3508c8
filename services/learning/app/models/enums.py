import enum

from sqlalchemy import Enum as SAEnum


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class QuizAttemptStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Allowed forward moves of a ledger record; refunded is terminal.
PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCEEDED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.SUCCEEDED, PaymentStatus.FAILED}),
    PaymentStatus.SUCCEEDED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# SQLAlchemy Enum instances (reuse across models to avoid duplicate type creation)
payment_status_enum = SAEnum(
    PaymentStatus, name="payment_status", values_callable=_values
)
enrollment_status_enum = SAEnum(
    EnrollmentStatus, name="enrollment_status", values_callable=_values
)
quiz_attempt_status_enum = SAEnum(
    QuizAttemptStatus, name="quiz_attempt_status", values_callable=_values
)
