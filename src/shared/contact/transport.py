"""SMTP transport handle and the process-wide manager that owns it."""

import asyncio
import logging
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Callable, List, Optional

import aiosmtplib

from src.shared.contact.config import load_transport_config
from src.shared.contact.errors import ConfigurationError, SendFailure, TransportInitError
from src.shared.contact.schemas import SendResult, TransportConfig

_TLS_VERSIONS = {
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}


def build_tls_context(config: TransportConfig) -> Optional[ssl.SSLContext]:
    """Hardened context for STARTTLS connections; None when no TLS options are set."""
    if config.tls is None:
        return None
    context = ssl.create_default_context()
    context.minimum_version = _TLS_VERSIONS[config.tls.min_version]
    if config.tls.reject_unauthorized:
        context.check_hostname = True
        context.verify_mode = ssl.CERT_REQUIRED
    return context


class SmtpTransport:
    """
    Reusable mail transport bound to one TransportConfig.

    Opens an SMTP session per send: implicit TLS on 465, STARTTLS on 587.
    """

    def __init__(self, config: TransportConfig):
        self.config = config
        self._tls_context = build_tls_context(config)

    async def send(self, message: EmailMessage) -> SendResult:
        """
        Send a message and report accepted/rejected recipients.

        Raises:
            SendFailure carrying message, code, command and server response
        """
        if message.get("Message-ID") is None:
            domain = self.config.from_address.rsplit("@", 1)[-1]
            message["Message-ID"] = make_msgid(domain=domain)

        recipients = _message_recipients(message)

        try:
            errors, _response = await aiosmtplib.send(
                message,
                hostname=self.config.host,
                port=self.config.port,
                username=self.config.credentials.user,
                password=self.config.credentials.password,
                use_tls=self.config.secure,
                start_tls=not self.config.secure,
                tls_context=self._tls_context,
                timeout=self.config.timeout,
            )
        except aiosmtplib.SMTPException as e:
            raise _to_send_failure(e) from e
        except OSError as e:
            raise SendFailure(str(e) or "Connection error", code="ECONNECTION", command="CONN") from e

        rejected = [address for address in recipients if address in errors]
        accepted = [address for address in recipients if address not in errors]
        return SendResult(
            message_id=message["Message-ID"],
            accepted=accepted,
            rejected=rejected,
        )


def _message_recipients(message: EmailMessage) -> List[str]:
    addresses = []
    for header in ("To", "Cc", "Bcc"):
        for value in message.get_all(header, []):
            addresses.extend(part.strip() for part in str(value).split(",") if part.strip())
    return addresses


def _to_send_failure(error: aiosmtplib.SMTPException) -> SendFailure:
    """Translate an aiosmtplib error into a SendFailure with operator detail."""
    message = getattr(error, "message", None) or str(error) or error.__class__.__name__
    response = None
    if isinstance(error, aiosmtplib.SMTPResponseException):
        response = f"{error.code} {error.message}"

    if isinstance(error, aiosmtplib.SMTPAuthenticationError):
        code, command = "EAUTH", "AUTH"
    elif isinstance(error, aiosmtplib.SMTPSenderRefused):
        code, command = "EENVELOPE", "MAIL FROM"
    elif isinstance(error, (aiosmtplib.SMTPRecipientRefused, aiosmtplib.SMTPRecipientsRefused)):
        code, command = "EENVELOPE", "RCPT TO"
        refused = getattr(error, "recipients", None)
        if refused and response is None:
            response = "; ".join(f"{r.code} {r.message}" for r in refused)
    elif isinstance(error, aiosmtplib.SMTPDataError):
        code, command = "EMESSAGE", "DATA"
    elif isinstance(error, aiosmtplib.SMTPTimeoutError):
        code, command = "ETIMEDOUT", None
    elif isinstance(error, (aiosmtplib.SMTPConnectError, aiosmtplib.SMTPServerDisconnected)):
        code, command = "ECONNECTION", "CONN"
    elif isinstance(error, aiosmtplib.SMTPResponseException):
        code, command = "EPROTOCOL", None
    else:
        code, command = "ESMTP", None

    return SendFailure(message, code=code, command=command, response=response)


class TransportManager:
    """
    Owns the single transport handle for this process.

    The first caller loads configuration and builds the handle; concurrent
    first callers wait on the same lock and reuse the result. Once built the
    handle is never rebuilt, so configuration changes need a restart.
    """

    def __init__(
        self,
        config_loader: Callable[[], TransportConfig] = load_transport_config,
        transport_factory: Callable[[TransportConfig], SmtpTransport] = SmtpTransport,
    ):
        self._config_loader = config_loader
        self._transport_factory = transport_factory
        self._handle: Optional[SmtpTransport] = None
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._handle is not None

    async def get_handle(self) -> SmtpTransport:
        """
        Return the cached handle, creating it on first use.

        Raises:
            TransportInitError, chained to the ConfigurationError when the
            configuration was the cause
        """
        if self._handle is not None:
            return self._handle

        async with self._lock:
            if self._handle is None:
                try:
                    config = self._config_loader()
                except ConfigurationError as e:
                    raise TransportInitError(f"Invalid email configuration: {e}") from e
                try:
                    handle = self._transport_factory(config)
                except Exception as e:
                    raise TransportInitError(f"Failed to create transport: {e}") from e
                self._handle = handle
                logging.info(f"Email transport initialized for {config.host}:{config.port}")
        return self._handle

    def reset(self) -> None:
        """Drop the cached handle; the next get_handle() builds a new one."""
        self._handle = None
