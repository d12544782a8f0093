"""Configuration for the contact service and its outbound SMTP transport."""

import os
import logging
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from src.shared.contact.errors import ConfigurationError
from src.shared.contact.input_validation import is_valid_email
from src.shared.contact.schemas import SmtpCredentials, TlsOptions, TransportConfig

# Load environment variables from .env file (for local development)
load_dotenv()

STARTTLS_PORT = 587
IMPLICIT_TLS_PORT = 465
ALLOWED_SMTP_PORTS = (STARTTLS_PORT, IMPLICIT_TLS_PORT)
DEFAULT_SMTP_TIMEOUT = 30.0

DEFAULT_RATE_LIMIT_MAX_REQUESTS = 3  # Max 3 messages per window
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 3600
DEFAULT_CORS_ORIGINS = ["http://localhost:3000"]


def load_transport_config(environ: Optional[Mapping[str, str]] = None) -> TransportConfig:
    """
    Build the SMTP transport configuration from environment variables.

    Reads SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS and CONTACT_TO_EMAIL.
    Performs no I/O and caches nothing; every call re-reads the mapping.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        A validated, immutable TransportConfig

    Raises:
        ConfigurationError if any required value is missing or invalid
    """
    env = os.environ if environ is None else environ

    host = (env.get("SMTP_HOST") or "").strip()
    raw_port = (env.get("SMTP_PORT") or "").strip()
    user = (env.get("SMTP_USER") or "").strip()
    password = env.get("SMTP_PASS") or ""
    to_address = (env.get("CONTACT_TO_EMAIL") or "").strip()

    if not host:
        raise ConfigurationError("Missing SMTP_HOST")

    try:
        port = int(raw_port)
    except ValueError:
        port = None
    if port not in ALLOWED_SMTP_PORTS:
        raise ConfigurationError("SMTP_PORT must be 587 (TLS) or 465 (SSL)")

    if not user or not is_valid_email(user):
        raise ConfigurationError("Invalid SMTP_USER email format")

    if not password:
        raise ConfigurationError("Missing SMTP_PASS")

    if not to_address or not is_valid_email(to_address):
        raise ConfigurationError("Invalid CONTACT_TO_EMAIL format")

    timeout = _float_setting(env, "SMTP_TIMEOUT", DEFAULT_SMTP_TIMEOUT)

    return TransportConfig(
        host=host,
        port=port,
        secure=port == IMPLICIT_TLS_PORT,
        credentials=SmtpCredentials(user=user, password=password),
        tls=TlsOptions() if port == STARTTLS_PORT else None,
        # Always send as the authenticated account
        from_address=user,
        to_address=to_address,
        timeout=timeout,
    )


class ContactSettings(BaseModel):
    """Service-level settings, read once when the app is wired."""
    model_config = ConfigDict(frozen=True)

    verbose_errors: bool = False
    rate_limit_max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS
    rate_limit_window_seconds: int = DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ContactSettings":
        env = os.environ if environ is None else environ

        verbose = env.get("APP_ENV", "production").strip().lower() == "development"
        override = env.get("CONTACT_VERBOSE_ERRORS")
        if override is not None and override.strip():
            verbose = override.strip().lower() in ("1", "true", "yes", "on")

        origins = [
            origin.strip()
            for origin in env.get("CORS_ALLOWED_ORIGINS", "").split(",")
            if origin.strip()
        ]

        return cls(
            verbose_errors=verbose,
            rate_limit_max_requests=_int_setting(
                env, "CONTACT_RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS
            ),
            rate_limit_window_seconds=_int_setting(
                env, "CONTACT_RATE_LIMIT_WINDOW_SECONDS", DEFAULT_RATE_LIMIT_WINDOW_SECONDS
            ),
            cors_origins=origins or list(DEFAULT_CORS_ORIGINS),
        )


def _int_setting(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logging.warning(f"Ignoring invalid {key}={raw!r}, using {default}")
        return default
    if value < 1:
        logging.warning(f"Ignoring non-positive {key}={raw!r}, using {default}")
        return default
    return value


def _float_setting(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logging.warning(f"Ignoring invalid {key}={raw!r}, using {default}")
        return default
    return value if value > 0 else default
