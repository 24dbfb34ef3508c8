import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database.engine import Base
from shared.database.types import UTCDateTime, utcnow


class Course(Base):
    __tablename__ = "courses"

    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    slug: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Soft reference; instructors live in the identity service
    instructor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    instructor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    discount_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Denormalized: count of non-cancelled enrollments. Corrected by the
    # reconciliation sweep if a crash leaves it out of step.
    enrollment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    sections = relationship("CourseSection", back_populates="course", lazy="noload")
    enrollments = relationship("Enrollment", back_populates="course", lazy="noload")

    @property
    def effective_price(self) -> Decimal:
        if self.discount_price is not None and self.discount_price > 0:
            return self.discount_price
        return self.price or Decimal("0.00")

    __table_args__ = (
        Index("ix_courses_instructor_id", "instructor_id"),
        Index("ix_courses_created_at", "created_at"),
        CheckConstraint("enrollment_count >= 0", name="ck_courses_enrollment_count_non_negative"),
    )
