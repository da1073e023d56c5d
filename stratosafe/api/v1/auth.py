from fastapi import APIRouter, Depends

from stratosafe.api.deps import get_auth_service, get_current_user, mfa_rate_limit
from stratosafe.core.errors import AccountNotFound, InvalidBackupCode, InvalidToken
from stratosafe.models.user import User
from stratosafe.schemas.auth import (
    LoginIn, LoginOut, MfaRequiredOut, PasswordChangeIn, RegisterIn, SuccessOut, UserOut,
)
from stratosafe.schemas.mfa import MfaVerifyIn
from stratosafe.services.auth import AuthService, MfaRequired

router = APIRouter(prefix="/api/users", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=201)
async def register(payload: RegisterIn, service: AuthService = Depends(get_auth_service)):
    return await service.register(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )


@router.post("/login", response_model=LoginOut | MfaRequiredOut)
async def login(payload: LoginIn, service: AuthService = Depends(get_auth_service)):
    result = await service.login(payload.email, payload.password)
    if isinstance(result, MfaRequired):
        # no token and nothing about the account beyond the email
        return MfaRequiredOut(email=result.email)
    return LoginOut(token=result.token, user=UserOut.model_validate(result.user))


@router.post("/verify-mfa", response_model=LoginOut, dependencies=[Depends(mfa_rate_limit)])
async def verify_mfa(payload: MfaVerifyIn, service: AuthService = Depends(get_auth_service)):
    try:
        result = await service.verify_mfa(payload.email, payload.token, payload.is_backup_code)
    except AccountNotFound:
        # unknown email looks exactly like a wrong code
        raise InvalidBackupCode() if payload.is_backup_code else InvalidToken()
    return LoginOut(token=result.token, user=UserOut.model_validate(result.user))


@router.get("/profile", response_model=UserOut)
async def profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/change-password", response_model=SuccessOut)
async def change_password(
    body: PasswordChangeIn,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.change_password(current_user, body.current_password, body.new_password)
    return SuccessOut(message="Password changed successfully")
