from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from stratosafe.core.config import Settings
from stratosafe.core.db import get_db
from stratosafe.core.errors import NotAuthenticated, TooManyRequests
from stratosafe.core.ratelimit import RateLimiter
from stratosafe.models.user import User
from stratosafe.services.auth import AuthService
from stratosafe.services.credentials import CredentialStore

# missing header is handled below so it gets the same 401 as a bad token
bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthService:
    state = request.app.state
    return AuthService.build(
        CredentialStore(db), state.settings, state.hasher, state.tokens
    )


async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    service: AuthService = Depends(get_auth_service),
) -> User:
    if creds is None or not creds.credentials:
        raise NotAuthenticated()
    return await service.authenticate(creds.credentials)


def mfa_rate_limit(request: Request) -> None:
    """One shared budget for the MFA routes, so codes can't be brute-forced."""
    limiter: RateLimiter = request.app.state.rate_limiter
    client = request.client.host if request.client else "unknown"
    if not limiter.hit("mfa", client):
        raise TooManyRequests()
