from fastapi import APIRouter, Depends

from stratosafe.api.deps import get_auth_service, get_current_user, mfa_rate_limit
from stratosafe.models.user import User
from stratosafe.schemas.auth import SuccessOut
from stratosafe.schemas.mfa import (
    BackupCodesOut, MfaEnableIn, MfaEnableOut, MfaSetupOut, MfaStatusOut,
)
from stratosafe.services.auth import AuthService

router = APIRouter(
    prefix="/api/users/mfa", tags=["mfa"], dependencies=[Depends(mfa_rate_limit)]
)


@router.get("/setup", response_model=MfaSetupOut)
async def mfa_setup(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    setup = await service.setup_mfa(current_user)
    return MfaSetupOut(secret=setup.secret, qr_code=setup.qr_code, otpauth_url=setup.otpauth_url)


@router.post("/enable", response_model=MfaEnableOut)
async def mfa_enable(
    body: MfaEnableIn,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    count = await service.enable_mfa(current_user, body.token)
    return MfaEnableOut(backup_codes_count=count)


@router.post("/disable", response_model=SuccessOut)
async def mfa_disable(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.disable_mfa(current_user)
    return SuccessOut(message="MFA disabled successfully")


@router.get("/status", response_model=MfaStatusOut)
async def mfa_status(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return service.mfa_status(current_user)


@router.post("/backup-codes", response_model=BackupCodesOut)
async def backup_codes(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    codes = await service.regenerate_backup_codes(current_user)
    return BackupCodesOut(backup_codes=codes)
