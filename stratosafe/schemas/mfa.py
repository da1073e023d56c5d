from pydantic import EmailStr, Field

from stratosafe.schemas.base import CamelModel


class MfaVerifyIn(CamelModel):
    email: EmailStr
    token: str = Field(..., min_length=1, max_length=64)
    is_backup_code: bool = False


class MfaSetupOut(CamelModel):
    secret: str
    qr_code: str | None = None   # data:image/png;base64,... or null if rendering failed
    otpauth_url: str
    message: str = "Scan the QR code with your authenticator app, then verify with a token"


class MfaEnableIn(CamelModel):
    token: str = Field(..., min_length=1, max_length=64)


class MfaEnableOut(CamelModel):
    success: bool = True
    backup_codes_count: int
    message: str = "MFA enabled successfully"


class MfaStatusOut(CamelModel):
    mfa_enabled: bool
    has_backup_codes: bool
    backup_codes_remaining: int


class BackupCodesOut(CamelModel):
    success: bool = True
    backup_codes: list[str]
    message: str = "New backup codes generated successfully. Keep them in a safe place."
