"""Certificate verification (public, read-only)."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidCredentialIdError
from app.models.certificate import Certificate
from app.models.course import Course

CREDENTIAL_PREFIX = "CERT-"


async def verify_certificate(db: AsyncSession, credential_id: str) -> dict:
    """Public verification, no auth required.

    Returns validity plus the snapshot taken at issuance. A revoked
    certificate is reported as invalid with its revocation time.
    """
    if not credential_id or not credential_id.startswith(CREDENTIAL_PREFIX):
        raise InvalidCredentialIdError()

    stmt = (
        select(Certificate, Course.slug)
        .join(Course, Course.course_id == Certificate.course_id)
        .where(Certificate.credential_id == credential_id)
    )
    row = (await db.execute(stmt)).first()

    if row is None:
        return {
            "is_valid": False,
            "message": "No certificate found with this credential ID.",
        }

    cert, course_slug = row
    if cert.is_revoked:
        return {
            "is_valid": False,
            "is_revoked": True,
            "revoked_at": cert.revoked_at,
            "message": "This certificate has been revoked.",
            "credential_id": cert.credential_id,
            "recipient_name": cert.recipient_name,
            "course_title": cert.course_title,
        }

    return {
        "is_valid": True,
        "message": "This certificate is valid and authentic.",
        "credential_id": cert.credential_id,
        "recipient_name": cert.recipient_name,
        "course_title": cert.course_title,
        "course_slug": course_slug,
        "instructor_name": cert.instructor_name,
        "issued_at": cert.issued_at,
    }
