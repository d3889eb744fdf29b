"""
Rate limiting configuration and types.

Policy lives here; enforcement is in rate_limiter.py. Limits are per client
address and operation type, counted over a one-minute sliding window.
"""
from dataclasses import dataclass
from enum import Enum


class OperationType(Enum):
    """Operation type for rate limiting."""

    READ = "read"
    WRITE = "write"
    SENSITIVE = "sensitive"  # Outbound HTTP fetches and bulk imports


@dataclass
class RateLimitConfig:
    """Rate limit for one operation type."""

    requests_per_minute: int


@dataclass
class RateLimitResult:
    """Result of a rate limit check with all info needed for headers."""

    allowed: bool
    limit: int  # Max requests in current window
    remaining: int  # Requests remaining in current window
    reset: int  # Unix timestamp when window resets
    retry_after: int  # Seconds until retry allowed (0 if allowed)


class RateLimitExceededError(Exception):
    """Raised when rate limit is exceeded."""

    def __init__(self, result: RateLimitResult) -> None:
        self.result = result
        super().__init__("Rate limit exceeded")


WINDOW_SECONDS = 60

RATE_LIMITS: dict[OperationType, RateLimitConfig] = {
    OperationType.READ: RateLimitConfig(requests_per_minute=300),
    OperationType.WRITE: RateLimitConfig(requests_per_minute=120),
    OperationType.SENSITIVE: RateLimitConfig(requests_per_minute=20),
}

# Format: (HTTP_METHOD, path_without_query_params)
SENSITIVE_ENDPOINTS: set[tuple[str, str]] = {
    ("GET", "/items/fetch-title"),
    ("POST", "/items/import"),
}


def get_operation_type(method: str, path: str) -> OperationType:
    """Determine operation type from HTTP method and path."""
    if (method, path) in SENSITIVE_ENDPOINTS:
        return OperationType.SENSITIVE
    if method in ("GET", "HEAD", "OPTIONS"):
        return OperationType.READ
    return OperationType.WRITE
