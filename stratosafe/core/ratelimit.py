# stratosafe/core/ratelimit.py
import logging

from limits import parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from stratosafe.core.config import Settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Request budget per client address, shared by every route that depends
    on it. With the default ``memory://`` storage the budget is per
    process; point RATE_LIMIT_STORAGE_URI at redis to share it between
    workers.
    """

    def __init__(self, limit: str, storage_uri: str = "memory://", enabled: bool = True):
        self.limit = parse(limit)
        self.enabled = enabled
        self._storage = storage_from_string(storage_uri)
        self._strategy = MovingWindowRateLimiter(self._storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(settings.RATE_LIMIT, settings.RATE_LIMIT_STORAGE_URI, settings.RATE_LIMIT_ENABLED)

    def hit(self, scope: str, client: str) -> bool:
        """Count one request; False once ``client`` is over budget."""
        if not self.enabled:
            return True
        allowed = self._strategy.hit(self.limit, scope, client)
        if not allowed:
            logger.warning(f"Rate limit {self.limit} exceeded on {scope} by {client}")
        return allowed

    def reset(self) -> None:
        self._storage.reset()
