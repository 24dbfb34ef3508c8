# Import all models so Alembic can discover them via Base.metadata
from .certificate import Certificate
from .course import Course
from .course_section import CourseSection
from .enrollment import Enrollment
from .lesson import Lesson
from .lesson_progress import LessonProgress
from .payment import PaymentRecord
from .quiz import Quiz
from .quiz_attempt import QuizAttempt
from .user import AppUser

__all__ = [
    "AppUser",
    "Certificate",
    "Course",
    "CourseSection",
    "Enrollment",
    "Lesson",
    "LessonProgress",
    "PaymentRecord",
    "Quiz",
    "QuizAttempt",
]
