# stratosafe/core/security.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi.concurrency import run_in_threadpool
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from stratosafe.core.config import Settings

logger = logging.getLogger(__name__)


class PasswordHasher:
    """
    Salted bcrypt hashing shared by passwords and backup codes.

    bcrypt is deliberately slow, so request handlers go through the
    ``*_async`` variants which run the work in the threadpool and keep the
    event loop free for unrelated requests.
    """

    def __init__(self, rounds: int):
        self._context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds
        )
        # built up front so the first unknown-email login costs the same as any other
        self._dummy_hash = self.hash("stratosafe-dummy-password")

    def hash(self, plain: str) -> str:
        return self._context.hash(plain)

    def verify(self, plain: str, hashed: str) -> bool:
        # a malformed stored hash raises ValueError; that is a server fault, not a mismatch
        return self._context.verify(plain, hashed)

    def verify_dummy(self, plain: str) -> bool:
        """Burn the same CPU as a real check when there is no account to check against."""
        self.verify(plain, self._dummy_hash)
        return False

    async def hash_async(self, plain: str) -> str:
        return await run_in_threadpool(self.hash, plain)

    async def verify_async(self, plain: str, hashed: str) -> bool:
        return await run_in_threadpool(self.verify, plain, hashed)

    async def verify_dummy_async(self, plain: str) -> bool:
        return await run_in_threadpool(self.verify_dummy, plain)


@dataclass(frozen=True)
class SessionClaims:
    account_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


class SessionTokenIssuer:
    """Signs and checks the stateless bearer token handed out after login."""

    def __init__(self, secret: str, algorithm: str = "HS256", lifetime: timedelta = timedelta(hours=24)):
        self._secret = secret
        self._algorithm = algorithm
        self.lifetime = lifetime

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionTokenIssuer":
        return cls(
            settings.JWT_SECRET,
            settings.JWT_ALGORITHM,
            timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    def issue(self, account_id: str, email: str, now: datetime | None = None) -> str:
        now = now or datetime.now(tz=timezone.utc)
        to_encode = {
            "sub": account_id,
            "email": email,
            "iat": now,
            "exp": now + self.lifetime,
        }
        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> SessionClaims | None:
        """
        Returns the claims, or None for anything wrong with the token.
        Callers can't tell expired from tampered; only the log can.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            logger.debug("Session token rejected: expired")
            return None
        except JWTError as e:
            logger.debug(f"Session token rejected: {e}")
            return None

        sub = payload.get("sub")
        email = payload.get("email")
        iat = payload.get("iat")
        exp = payload.get("exp")
        if not isinstance(sub, str) or not sub or not isinstance(email, str) or not email:
            logger.debug("Session token rejected: missing sub/email")
            return None
        if not isinstance(iat, (int, float)) or not isinstance(exp, (int, float)):
            logger.debug("Session token rejected: missing iat/exp")
            return None

        return SessionClaims(
            account_id=sub,
            email=email,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
