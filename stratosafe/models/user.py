# stratosafe/models/user.py
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stratosafe.core.db import Base
from stratosafe.models.mfa import BackupCodeSet, MfaDisabled, MfaEnabled, MfaPending, MfaState


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "mfa_enabled = 0 OR mfa_secret IS NOT NULL",
            name="ck_users_mfa_enabled_has_secret",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))
    password_hash: Mapped[str] = mapped_column(String(255))

    # only ever written through ``mfa_state``
    mfa_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    mfa_secret: Mapped[str | None] = mapped_column(String(64), nullable=True)
    mfa_backup_codes: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    backup_codes_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def backup_codes(self) -> BackupCodeSet:
        return BackupCodeSet(tuple(self.mfa_backup_codes or ()), self.backup_codes_version or 0)

    @property
    def mfa_state(self) -> MfaState:
        if self.mfa_enabled:
            if not self.mfa_secret:
                raise RuntimeError(f"user {self.id} has MFA enabled without a secret")
            return MfaEnabled(self.mfa_secret, self.backup_codes)
        if self.mfa_secret:
            return MfaPending(self.mfa_secret)
        return MfaDisabled()

    @mfa_state.setter
    def mfa_state(self, state: MfaState) -> None:
        # all four columns move together, never a partial update
        if isinstance(state, MfaEnabled):
            self.mfa_enabled = True
            self.mfa_secret = state.secret
            self.mfa_backup_codes = list(state.backup_codes.hashes)
            self.backup_codes_version = state.backup_codes.version
        elif isinstance(state, MfaPending):
            self.mfa_enabled = False
            self.mfa_secret = state.secret
            self.mfa_backup_codes = None
            self.backup_codes_version = (self.backup_codes_version or 0) + 1
        elif isinstance(state, MfaDisabled):
            self.mfa_enabled = False
            self.mfa_secret = None
            self.mfa_backup_codes = None
            self.backup_codes_version = (self.backup_codes_version or 0) + 1
        else:
            raise TypeError(f"unknown MFA state {state!r}")

    def __repr__(self) -> str:
        # never render hashes or secrets
        return f"<User id={self.id} email={self.email}>"
