# stratosafe/services/codes.py
import secrets
import string

import pyotp

BACKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_secret() -> str:
    # 32 base32 chars = 160 bits, what authenticator apps expect
    return pyotp.random_base32(length=32)


def gen_code(n: int = 8) -> str:
    return "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(n))


def generate_backup_codes(count: int = 10, length: int = 8) -> list[str]:
    """
    Plaintext recovery codes. 8 chars over A-Z0-9 is ~41 bits each.
    Callers hash them before storing and show the plaintext exactly once.
    """
    codes: set[str] = set()
    while len(codes) < count:
        codes.add(gen_code(length))
    return list(codes)


def normalize_backup_code(code: str) -> str:
    """Users type codes with spaces, dashes or lower case."""
    return "".join(ch for ch in code if ch not in " -\t").upper()
