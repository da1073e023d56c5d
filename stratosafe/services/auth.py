# stratosafe/services/auth.py
"""
Login and MFA orchestration.

    anonymous --login--> primary credentials checked
        --mfa off--> authenticated (session token)
        --mfa on---> mfa required --verify_mfa--> authenticated

There is no path from "mfa required" to a token that skips ``verify_mfa``.
"""
import logging
from dataclasses import dataclass
from typing import Union

from stratosafe.core.config import Settings
from stratosafe.core.errors import (
    AccountNotFound,
    EmailAlreadyRegistered,
    InvalidBackupCode,
    InvalidConfirmationCode,
    InvalidCredentials,
    InvalidToken,
    MfaAlreadyEnabled,
    MfaNotEnabled,
    NotAuthenticated,
    PasswordChangeRejected,
    QrCodeError,
)
from stratosafe.core.security import PasswordHasher, SessionTokenIssuer
from stratosafe.models.mfa import BackupCodeSet, MfaDisabled, MfaEnabled, MfaPending
from stratosafe.models.user import User
from stratosafe.services.backup_codes import BackupCodeVerifier
from stratosafe.services.codes import generate_secret
from stratosafe.services.credentials import CredentialStore
from stratosafe.services.totp import TotpEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Authenticated:
    token: str
    user: User


@dataclass(frozen=True)
class MfaRequired:
    email: str
    requires_mfa: bool = True


LoginResult = Union[Authenticated, MfaRequired]


@dataclass(frozen=True)
class MfaSetup:
    secret: str
    otpauth_url: str
    qr_code: str | None


@dataclass(frozen=True)
class MfaStatus:
    mfa_enabled: bool
    has_backup_codes: bool
    backup_codes_remaining: int


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: SessionTokenIssuer,
        totp: TotpEngine,
        backup_codes: BackupCodeVerifier,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.totp = totp
        self.backup_codes = backup_codes

    @classmethod
    def build(
        cls,
        store: CredentialStore,
        settings: Settings,
        hasher: PasswordHasher,
        tokens: SessionTokenIssuer,
    ) -> "AuthService":
        return cls(
            store=store,
            hasher=hasher,
            tokens=tokens,
            totp=TotpEngine.from_settings(settings),
            backup_codes=BackupCodeVerifier(
                store, hasher, settings.BACKUP_CODE_COUNT, settings.BACKUP_CODE_LENGTH
            ),
        )

    def _authenticated(self, user: User) -> Authenticated:
        return Authenticated(token=self.tokens.issue(user.id, user.email), user=user)

    # ---------- accounts ----------

    async def register(self, email: str, password: str, first_name: str, last_name: str) -> User:
        if await self.store.find_by_email(email):
            raise EmailAlreadyRegistered()
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=await self.hasher.hash_async(password),
        )
        user.mfa_state = MfaDisabled()
        user = await self.store.save(user)
        logger.info(f"Registered user {user.id}")
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if current_password == new_password:
            raise PasswordChangeRejected("New password must be different from the current password")
        if not await self.hasher.verify_async(current_password, user.password_hash):
            raise PasswordChangeRejected("Current password is incorrect")
        user.password_hash = await self.hasher.hash_async(new_password)
        await self.store.save(user)
        logger.info(f"Password changed for user {user.id}")

    async def authenticate(self, token: str) -> User:
        """Bearer token -> user. Every failure is the same NotAuthenticated."""
        claims = self.tokens.verify(token)
        if claims is None:
            raise NotAuthenticated()
        user = await self.store.find_by_id(claims.account_id)
        if user is None:
            raise NotAuthenticated()
        return user

    # ---------- login ----------

    async def login(self, email: str, password: str) -> LoginResult:
        user = await self.store.find_by_email(email)
        if user is None:
            await self.hasher.verify_dummy_async(password)
            logger.warning("Failed login: unknown email")
            raise InvalidCredentials()
        if not await self.hasher.verify_async(password, user.password_hash):
            logger.warning(f"Failed login for user {user.id}: wrong password")
            raise InvalidCredentials()

        if isinstance(user.mfa_state, MfaEnabled):
            logger.info(f"User {user.id} passed password check, MFA required")
            return MfaRequired(email=user.email)

        logger.info(f"User {user.id} logged in")
        return self._authenticated(user)

    async def verify_mfa(self, email: str, code: str, is_backup_code: bool) -> Authenticated:
        user = await self.store.find_by_email(email)
        if user is None:
            raise AccountNotFound()

        state = user.mfa_state
        if is_backup_code:
            if not await self.backup_codes.verify(user, code):
                logger.warning(f"Failed MFA for user {user.id}: bad backup code")
                raise InvalidBackupCode()
        else:
            # a pending or missing secret fails exactly like a wrong code
            secret = state.secret if isinstance(state, MfaEnabled) else None
            if not self.totp.verify(code, secret):
                logger.warning(f"Failed MFA for user {user.id}: bad TOTP code")
                raise InvalidToken()

        logger.info(f"User {user.id} completed MFA")
        return self._authenticated(user)

    # ---------- MFA lifecycle ----------

    async def setup_mfa(self, user: User) -> MfaSetup:
        """New pending secret; calling again before enabling replaces it."""
        if isinstance(user.mfa_state, MfaEnabled):
            raise MfaAlreadyEnabled()

        secret = generate_secret()
        user.mfa_state = MfaPending(secret)
        await self.store.save(user)

        uri = self.totp.provisioning_uri(user.email, secret)
        try:
            qr_code = self.totp.render_scannable(uri)
        except QrCodeError as e:
            logger.warning(f"QR rendering failed for user {user.id}: {e.__cause__!r}")
            qr_code = None
        logger.info(f"MFA setup started for user {user.id}")
        return MfaSetup(secret=secret, otpauth_url=uri, qr_code=qr_code)

    async def enable_mfa(self, user: User, code: str) -> int:
        """
        Confirms the pending secret and stores a fresh backup-code set.
        Returns how many codes exist; their values come from
        ``regenerate_backup_codes`` so the two are separate audit events.
        """
        state = user.mfa_state
        if isinstance(state, MfaEnabled):
            raise MfaAlreadyEnabled()
        secret = state.secret if isinstance(state, MfaPending) else None
        if not self.totp.verify(code, secret):
            logger.warning(f"MFA enable rejected for user {user.id}: bad TOTP code")
            raise InvalidConfirmationCode()

        _, hashes = await self.backup_codes.issue()
        user.mfa_state = MfaEnabled(secret, user.backup_codes.replaced_by(hashes))
        await self.store.save(user)
        logger.info(f"MFA enabled for user {user.id}")
        return len(hashes)

    async def disable_mfa(self, user: User) -> None:
        user.mfa_state = MfaDisabled()
        await self.store.save(user)
        logger.info(f"MFA disabled for user {user.id}")

    async def regenerate_backup_codes(self, user: User) -> list[str]:
        state = user.mfa_state
        if not isinstance(state, MfaEnabled):
            raise MfaNotEnabled()
        codes, hashes = await self.backup_codes.issue()
        user.mfa_state = MfaEnabled(state.secret, state.backup_codes.replaced_by(hashes))
        await self.store.save(user)
        logger.info(f"Backup codes regenerated for user {user.id}")
        return codes

    def mfa_status(self, user: User) -> MfaStatus:
        state = user.mfa_state
        codes = state.backup_codes if isinstance(state, MfaEnabled) else BackupCodeSet()
        return MfaStatus(
            mfa_enabled=isinstance(state, MfaEnabled),
            has_backup_codes=len(codes) > 0,
            backup_codes_remaining=len(codes),
        )
