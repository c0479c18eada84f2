from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from functools import wraps
import httpx
from datetime import datetime, timedelta, timezone
from lp_analytics.core.errors import ServiceUnavailableError

class CircuitBreaker:
    """Simple circuit breaker to prevent cascade failures"""
    def __init__(self, failure_threshold: int = 3, timeout_seconds: int = 60, name: str = "subgraph"):
        self.failure_threshold = failure_threshold
        self.timeout = timedelta(seconds=timeout_seconds)
        self.name = name
        self.failures = 0
        self.last_failure_time = None
        self.state = "closed"  # closed, open, half_open

    def record_success(self):
        """Reset on success"""
        self.failures = 0
        self.state = "closed"
        self.last_failure_time = None

    def record_failure(self):
        """Increment failure count"""
        self.failures += 1
        self.last_failure_time = datetime.now(timezone.utc)
        if self.failures >= self.failure_threshold:
            self.state = "open"

    def can_attempt(self) -> bool:
        """Check if we can make a request"""
        if self.state == "closed":
            return True

        if self.state == "open":
            if datetime.now(timezone.utc) - self.last_failure_time > self.timeout:
                self.state = "half_open"
                return True
            return False

        # half_open state - allow one request to test
        return True

    def __call__(self, func):
        """Decorator to wrap coroutine functions with circuit breaker"""
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if not self.can_attempt():
                raise ServiceUnavailableError(self.name)

            try:
                result = await func(*args, **kwargs)
                self.record_success()
                return result
            except Exception:
                self.record_failure()
                raise
        return wrapper

# Retry decorator for subgraph calls (only transport failures are retried)
def retry_on_transport_error(attempts: int = 1):
    return retry(
        retry=retry_if_exception_type((httpx.TransportError,)),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True
    )
