# stratosafe/models/mfa.py
"""
MFA state of an account as a closed set of variants.

``MfaEnabled`` can't be built without a secret, so "enabled but no
secret" is not a state the rest of the code ever has to handle.
"""
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Union


@dataclass(frozen=True)
class BackupCodeSet:
    """
    Hashed one-time codes plus a version that moves on every change.
    The version lets the store replace the set only if nobody else did first.
    """
    hashes: tuple[str, ...] = ()
    version: int = 0

    def __len__(self) -> int:
        return len(self.hashes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.hashes)

    def __contains__(self, code_hash: object) -> bool:
        return code_hash in self.hashes

    def without(self, code_hash: str) -> "BackupCodeSet":
        if code_hash not in self.hashes:
            raise KeyError(code_hash)
        return BackupCodeSet(
            tuple(h for h in self.hashes if h != code_hash), self.version + 1
        )

    def replaced_by(self, hashes: Iterable[str]) -> "BackupCodeSet":
        return BackupCodeSet(tuple(hashes), self.version + 1)


@dataclass(frozen=True)
class MfaDisabled:
    pass


@dataclass(frozen=True)
class MfaPending:
    secret: str

    def __post_init__(self):
        if not self.secret:
            raise ValueError("pending MFA needs a secret")


@dataclass(frozen=True)
class MfaEnabled:
    secret: str
    backup_codes: BackupCodeSet = field(default_factory=BackupCodeSet)

    def __post_init__(self):
        if not self.secret:
            raise ValueError("enabled MFA needs a secret")


MfaState = Union[MfaDisabled, MfaPending, MfaEnabled]
