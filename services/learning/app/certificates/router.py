"""Certificates router."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.certificates import controller
from app.certificates.schemas import CertificateVerifyResponse
from app.database import get_db

router = APIRouter(prefix="/certificates", tags=["Certificates"])


@router.get(
    "/verify/{credential_id}",
    response_model=CertificateVerifyResponse,
    summary="Verify a certificate (public)",
    description="Public endpoint, no authentication required. "
    "Returns certificate validity, revocation status and issue details.",
)
async def verify_certificate(
    credential_id: str,
    db: AsyncSession = Depends(get_db),
) -> CertificateVerifyResponse:
    return await controller.verify_certificate(db, credential_id)
