"""initial learning schema

Revision ID: 0f3a9c2d7b1e
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '0f3a9c2d7b1e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

payment_status = sa.Enum(
    'pending', 'succeeded', 'failed', 'refunded', name='payment_status',
)
enrollment_status = sa.Enum(
    'active', 'completed', 'cancelled', 'expired', name='enrollment_status',
)
quiz_attempt_status = sa.Enum(
    'in_progress', 'completed', name='quiz_attempt_status',
)


def upgrade() -> None:
    op.create_table(
        'app_users',
        sa.Column('user_id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(200), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_app_users_stripe_customer_id', 'app_users', ['stripe_customer_id'])

    op.create_table(
        'courses',
        sa.Column('course_id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('slug', sa.String(300), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('instructor_id', sa.Uuid(), nullable=True),
        sa.Column('instructor_name', sa.String(200), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('discount_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('enrollment_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('enrollment_count >= 0', name='ck_courses_enrollment_count_non_negative'),
    )
    op.create_index('ix_courses_instructor_id', 'courses', ['instructor_id'])
    op.create_index('ix_courses_created_at', 'courses', ['created_at'])

    op.create_table(
        'course_sections',
        sa.Column('section_id', sa.Uuid(), primary_key=True),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('sort_order', sa.SmallInteger(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_course_sections_course_id', 'course_sections', ['course_id'])

    op.create_table(
        'lessons',
        sa.Column('lesson_id', sa.Uuid(), primary_key=True),
        sa.Column('section_id', sa.Uuid(), sa.ForeignKey('course_sections.section_id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('sort_order', sa.SmallInteger(), nullable=False, server_default='0'),
        sa.Column('duration_secs', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_lessons_section_id', 'lessons', ['section_id'])

    op.create_table(
        'payments',
        sa.Column('payment_id', sa.Uuid(), primary_key=True),
        sa.Column('provider_intent_id', sa.String(255), nullable=False, unique=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('app_users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('status', payment_status, nullable=False, server_default='pending'),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_course_id', 'payments', ['course_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])

    op.create_table(
        'enrollments',
        sa.Column('enrollment_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('app_users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('payment_id', sa.Uuid(), sa.ForeignKey('payments.payment_id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', enrollment_status, nullable=False, server_default='active'),
        sa.Column('progress_pct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_enrollments_user_course'),
        sa.CheckConstraint('progress_pct BETWEEN 0 AND 100', name='ck_enrollments_progress_pct_range'),
    )
    op.create_index('ix_enrollments_course_id', 'enrollments', ['course_id'])
    op.create_index('ix_enrollments_payment_id', 'enrollments', ['payment_id'])
    op.create_index('ix_enrollments_status', 'enrollments', ['status'])

    op.create_table(
        'lesson_progress',
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('app_users.user_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('lesson_id', sa.Uuid(), sa.ForeignKey('lessons.lesson_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('watched_secs', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_watched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_lesson_progress_lesson_id', 'lesson_progress', ['lesson_id'])

    op.create_table(
        'quizzes',
        sa.Column('quiz_id', sa.Uuid(), primary_key=True),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('section_id', sa.Uuid(), sa.ForeignKey('course_sections.section_id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('passing_score', sa.SmallInteger(), nullable=False, server_default='70'),
        sa.Column('max_attempts', sa.SmallInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_quizzes_course_id', 'quizzes', ['course_id'])

    op.create_table(
        'quiz_attempts',
        sa.Column('attempt_id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.quiz_id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('app_users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', quiz_attempt_status, nullable=False, server_default='in_progress'),
        sa.Column('score', sa.SmallInteger(), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_quiz_attempts_user_quiz', 'quiz_attempts', ['user_id', 'quiz_id'])
    # At most one in-flight attempt per (quiz, student)
    op.create_index(
        'uq_quiz_attempts_one_in_progress',
        'quiz_attempts',
        ['quiz_id', 'user_id'],
        unique=True,
        postgresql_where=sa.text("status = 'in_progress'"),
    )

    op.create_table(
        'certificates',
        sa.Column('certificate_id', sa.Uuid(), primary_key=True),
        sa.Column('credential_id', sa.String(64), nullable=False, unique=True),
        sa.Column('enrollment_id', sa.Uuid(), sa.ForeignKey('enrollments.enrollment_id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('recipient_name', sa.String(200), nullable=False, server_default=''),
        sa.Column('course_title', sa.String(300), nullable=False, server_default=''),
        sa.Column('instructor_name', sa.String(200), nullable=True),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_certificates_user_id', 'certificates', ['user_id'])
    op.create_index('ix_certificates_course_id', 'certificates', ['course_id'])


def downgrade() -> None:
    op.drop_table('certificates')
    op.drop_index('uq_quiz_attempts_one_in_progress', table_name='quiz_attempts')
    op.drop_table('quiz_attempts')
    op.drop_table('quizzes')
    op.drop_table('lesson_progress')
    op.drop_table('enrollments')
    op.drop_table('payments')
    op.drop_table('lessons')
    op.drop_table('course_sections')
    op.drop_table('courses')
    op.drop_table('app_users')

    quiz_attempt_status.drop(op.get_bind(), checkfirst=True)
    enrollment_status.drop(op.get_bind(), checkfirst=True)
    payment_status.drop(op.get_bind(), checkfirst=True)
