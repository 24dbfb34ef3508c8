from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import Settings
from app.payments.gateway import StripeGateway
from app.webhooks.replay_guard import ReplayGuard
from shared.constants import Role

_bearer = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    return Settings()


def _decode_token(token: str, settings: Settings) -> dict:
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    settings: Settings = Depends(get_settings),
) -> dict:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        payload = _decode_token(credentials.credentials, settings)
        UUID(payload["sub"])
        return payload
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


async def get_current_user(payload: dict = Depends(get_token_payload)) -> UUID:
    return UUID(payload["sub"])


async def require_admin(payload: dict = Depends(get_token_payload)) -> UUID:
    roles = payload.get("roles") or []
    if Role.ADMIN.value not in roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return UUID(payload["sub"])


def get_replay_guard(request: Request) -> ReplayGuard:
    return request.app.state.replay_guard


def get_stripe_gateway(settings: Settings = Depends(get_settings)) -> StripeGateway:
    return StripeGateway(settings.stripe_secret_key)
