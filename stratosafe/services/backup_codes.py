# stratosafe/services/backup_codes.py
import logging

from fastapi.concurrency import run_in_threadpool

from stratosafe.core.security import PasswordHasher
from stratosafe.models.mfa import BackupCodeSet, MfaEnabled
from stratosafe.models.user import User
from stratosafe.services.codes import generate_backup_codes, normalize_backup_code
from stratosafe.services.credentials import CredentialStore

logger = logging.getLogger(__name__)


class BackupCodeVerifier:
    """Single-use recovery codes: hash on issue, match-and-remove on use."""

    def __init__(self, store: CredentialStore, hasher: PasswordHasher, count: int = 10, length: int = 8):
        self.store = store
        self.hasher = hasher
        self.count = count
        self.length = length

    async def issue(self) -> tuple[list[str], list[str]]:
        """Fresh batch as (plaintext, hashes). The plaintext is never stored."""
        codes = generate_backup_codes(self.count, self.length)
        hashes = await run_in_threadpool(lambda: [self.hasher.hash(c) for c in codes])
        return codes, hashes

    def _find_match(self, candidate: str, codes: BackupCodeSet) -> str | None:
        # TODO: keep hashing after a hit so timing doesn't leak the position
        for code_hash in codes:
            if self.hasher.verify(candidate, code_hash):
                return code_hash
        return None

    async def verify(self, account: User, candidate: str) -> bool:
        """
        True only if ``candidate`` matched a stored code and that code was
        removed. Presenting the same code twice fails the second time;
        a different code consumed concurrently does not make this one fail.
        """
        state = account.mfa_state
        if not isinstance(state, MfaEnabled) or not state.backup_codes:
            return False
        normalized = normalize_backup_code(candidate or "")
        if len(normalized) != self.length or not normalized.isalnum():
            return False

        matched = await run_in_threadpool(self._find_match, normalized, state.backup_codes)
        if matched is None:
            return False

        codes = state.backup_codes
        while not await self.store.replace_backup_codes(account, codes, codes.without(matched)):
            # lost the swap: retry against the fresh set unless our code is gone
            state = account.mfa_state
            if not isinstance(state, MfaEnabled) or matched not in state.backup_codes:
                return False
            codes = state.backup_codes

        logger.info(f"Backup code used by user {account.id}, {len(codes) - 1} left")
        return True
