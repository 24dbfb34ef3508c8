"""Certificate schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CertificateVerifyResponse(BaseModel):
    """Public verification result."""

    is_valid: bool
    is_revoked: bool = False
    revoked_at: datetime | None = None
    message: str
    credential_id: str | None = None
    recipient_name: str | None = None
    course_title: str | None = None
    course_slug: str | None = None
    instructor_name: str | None = None
    issued_at: datetime | None = None
