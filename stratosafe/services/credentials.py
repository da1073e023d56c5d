# stratosafe/services/credentials.py
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stratosafe.models.mfa import BackupCodeSet
from stratosafe.models.user import User

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Account persistence. The only place that reads or writes password
    hashes, MFA secrets and backup-code hashes.

    Updates go through the ORM unit of work, so a save only touches the
    columns that changed and concurrent saves of unrelated fields don't
    clobber each other.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_email(self, email: str) -> User | None:
        # exact match, emails are stored as given
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_id(self, account_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.id == account_id))
        return result.scalar_one_or_none()

    async def save(self, account: User) -> User:
        self.db.add(account)
        await self.db.commit()
        await self.db.refresh(account)
        return account

    async def replace_backup_codes(
        self, account: User, expected: BackupCodeSet, replacement: BackupCodeSet
    ) -> bool:
        """
        Compare-and-swap on the backup-code version. False means someone
        else changed the set (or turned MFA off) since ``expected`` was read.
        """
        result = await self.db.execute(
            update(User)
            .where(
                User.id == account.id,
                User.mfa_enabled.is_(True),
                User.backup_codes_version == expected.version,
            )
            .values(
                mfa_backup_codes=list(replacement.hashes),
                backup_codes_version=replacement.version,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(account)
        if result.rowcount != 1:
            logger.warning(f"Backup code set for user {account.id} changed concurrently")
            return False
        return True
