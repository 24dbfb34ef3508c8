import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.engine import Base
from shared.database.types import UTCDateTime, utcnow


class LessonProgress(Base):
    """Completion fact per (student, lesson). ``completed`` never flips back to False."""

    __tablename__ = "lesson_progress"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("app_users.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("lessons.lesson_id", ondelete="CASCADE"),
        primary_key=True,
    )
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    watched_secs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_watched_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_lesson_progress_lesson_id", "lesson_id"),
    )
