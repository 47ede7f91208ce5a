"""
Per-client request limits.

Upload and download endpoints are decorated with ``limiter``. Every request
counts against them. Login uses ``login_failures``, which only failed
attempts draw from, so it sits alongside the per-account lockout without
penalising clients that sign in successfully.
"""
from fastapi import Request
from limits import parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings
from .exceptions import RateLimitedError

settings = get_settings()


class FailedAttemptLimiter:
    def __init__(self, limit: str, storage_uri: str, namespace: str, enabled: bool = True):
        self.item = parse(limit)
        self.strategy = FixedWindowRateLimiter(storage_from_string(storage_uri))
        self.namespace = namespace
        self.enabled = enabled

    def check(self, request: Request) -> str:
        """Raise RateLimitedError when the client has used up its failures. Returns the client key."""
        key = get_remote_address(request)
        if self.enabled and not self.strategy.test(self.item, self.namespace, key):
            raise RateLimitedError("Too many authentication attempts from this IP, please try again later")
        return key

    def record_failure(self, key: str) -> None:
        if self.enabled:
            self.strategy.hit(self.item, self.namespace, key)

    def reset(self) -> None:
        self.strategy.storage.reset()


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)

login_failures = FailedAttemptLimiter(
    settings.auth_rate_limit,
    settings.rate_limit_storage_uri,
    namespace="login",
    enabled=settings.rate_limit_enabled,
)
