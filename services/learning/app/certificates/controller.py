from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.certificates import service
from app.certificates.schemas import CertificateVerifyResponse
from app.exceptions import InvalidCredentialIdError


async def verify_certificate(
    db: AsyncSession,
    credential_id: str,
) -> CertificateVerifyResponse:
    try:
        result = await service.verify_certificate(db, credential_id)
    except InvalidCredentialIdError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid credential ID format",
        ) from exc
    return CertificateVerifyResponse(**result)
