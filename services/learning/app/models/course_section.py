import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, SmallInteger, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database.engine import Base
from shared.database.types import UTCDateTime, utcnow


class CourseSection(Base):
    __tablename__ = "course_sections"

    section_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    sort_order: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    course = relationship("Course", back_populates="sections", lazy="select")
    lessons = relationship("Lesson", back_populates="section", lazy="noload")

    __table_args__ = (
        Index("ix_course_sections_course_id", "course_id"),
    )
