"""Process-wide wiring for the contact feature, exposed as FastAPI dependencies."""

from functools import lru_cache

from src.shared.contact.config import ContactSettings
from src.shared.contact.handler import ContactSubmissionHandler
from src.shared.contact.rate_limit import RateLimiter
from src.shared.contact.transport import TransportManager


@lru_cache(maxsize=None)
def get_settings() -> ContactSettings:
    return ContactSettings.from_env()


@lru_cache(maxsize=None)
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


@lru_cache(maxsize=None)
def get_transport_manager() -> TransportManager:
    return TransportManager()


@lru_cache(maxsize=None)
def get_submission_handler() -> ContactSubmissionHandler:
    """The single handler shared by every request in this process."""
    return ContactSubmissionHandler(
        rate_limiter=get_rate_limiter(),
        transport_manager=get_transport_manager(),
        verbose_errors=get_settings().verbose_errors,
    )
