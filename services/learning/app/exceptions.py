"""Shared domain exception classes for the learning service.

These are raised by service-layer code and caught by controllers
to map to appropriate HTTP responses.
"""


# ---------------------------------------------------------------------------
# Webhook security
# ---------------------------------------------------------------------------


class MissingSignatureError(Exception):
    """Raised when a webhook arrives without a provider signature header."""


class InvalidSignatureError(Exception):
    """Raised when the webhook signature does not verify against the shared secret."""


class InvalidPayloadError(Exception):
    """Raised when a signed webhook body is not a well-formed provider event."""


class StaleEventError(Exception):
    """Raised when a verified event is older than the accepted window."""

    def __init__(self, event_id: str = "", age_secs: float = 0.0):
        self.event_id = event_id
        self.age_secs = age_secs
        super().__init__(f"Event {event_id} is {age_secs:.0f}s old")


class WebhookNotConfiguredError(Exception):
    """Raised when no webhook signing secret is configured."""


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class CourseNotFoundError(Exception):
    """Raised when a course cannot be found by ID or slug."""

    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Course not found: {identifier}")


class LessonNotFoundError(Exception):
    def __init__(self, lesson_id: str = ""):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson not found: {lesson_id}")


class EnrollmentNotFoundError(Exception):
    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Enrollment not found: {identifier}")


class QuizNotFoundError(Exception):
    def __init__(self, quiz_id: str = ""):
        self.quiz_id = quiz_id
        super().__init__(f"Quiz not found: {quiz_id}")


class AttemptNotFoundError(Exception):
    def __init__(self, attempt_id: str = ""):
        self.attempt_id = attempt_id
        super().__init__(f"Quiz attempt not found: {attempt_id}")


class UserNotFoundError(Exception):
    def __init__(self, user_id: str = ""):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


# ---------------------------------------------------------------------------
# Enrollment & payment
# ---------------------------------------------------------------------------


class InactiveAccountError(Exception):
    """Raised when a disabled (or unknown) account would gain an enrollment."""

    def __init__(self, user_id: str = ""):
        self.user_id = user_id
        super().__init__(f"Account is inactive: {user_id}")


class AlreadyEnrolledError(Exception):
    """Raised when user tries to enroll in a course they are already enrolled in."""


class NotEnrolledError(Exception):
    """Raised when an operation requires an active enrollment that does not exist."""


class EnrollmentNotCancellableError(Exception):
    """Raised when a student cancels an enrollment that is completed or expired."""


class CourseNotPublishedError(Exception):
    """Raised when enrollment or purchase is attempted on an unpublished course."""


class PaymentRequiredError(Exception):
    """Raised when the free enrollment path is used for a priced course."""


class FreeCourseError(Exception):
    """Raised when a payment intent is requested for a course that costs nothing."""


class PriceMismatchError(Exception):
    """Raised when the client-side expected price disagrees with the course price."""


class PaymentProviderError(Exception):
    """Raised when the payment provider API call fails."""


# ---------------------------------------------------------------------------
# Assessment
# ---------------------------------------------------------------------------


class MaxAttemptsReachedError(Exception):
    """Raised when user has exhausted quiz attempt limit."""

    def __init__(self, max_attempts: int):
        self.max_attempts = max_attempts
        super().__init__(f"Maximum attempts ({max_attempts}) reached")


class AttemptAlreadyCompletedError(Exception):
    """Raised when a completed quiz attempt is submitted again."""


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


class InvalidCredentialIdError(Exception):
    """Raised when a credential id does not have the CERT- prefix."""
