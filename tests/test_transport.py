"""
Unit tests for the SMTP transport handle and its process-wide manager.
aiosmtplib.send is always mocked; no network access.
"""

import asyncio
import ssl
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest

from src.shared.contact.config import load_transport_config
from src.shared.contact.email_utils import build_contact_email
from src.shared.contact.errors import ConfigurationError, SendFailure, TransportInitError
from src.shared.contact.schemas import SanitizedSubmission
from src.shared.contact.transport import SmtpTransport, TransportManager, build_tls_context


def _make_config(port: str = "587"):
    return load_transport_config({
        "SMTP_HOST": "smtp.example.com",
        "SMTP_PORT": port,
        "SMTP_USER": "contact@example.com",
        "SMTP_PASS": "s3cret",
        "CONTACT_TO_EMAIL": "inbox@example.org",
    })


def _make_message(config):
    submission = SanitizedSubmission(
        name="Léa", email="lea@example.com", subject="Info", message="Bonjour"
    )
    return build_contact_email(submission, config)


class TestBuildTlsContext:

    def test_starttls_context_is_hardened(self):
        context = build_tls_context(_make_config("587"))

        assert context.minimum_version == ssl.TLSVersion.TLSv1_2
        assert context.check_hostname is True
        assert context.verify_mode == ssl.CERT_REQUIRED

    def test_no_context_for_implicit_tls(self):
        assert build_tls_context(_make_config("465")) is None


class TestSmtpTransportSend:
    """SmtpTransport.send drives aiosmtplib and reports the outcome."""

    @pytest.mark.asyncio
    async def test_send_on_587_uses_starttls(self):
        config = _make_config("587")
        transport = SmtpTransport(config)

        with patch("src.shared.contact.transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = ({}, "OK")
            result = await transport.send(_make_message(config))

        kwargs = mock_send.call_args.kwargs
        assert kwargs["hostname"] == "smtp.example.com"
        assert kwargs["port"] == 587
        assert kwargs["username"] == "contact@example.com"
        assert kwargs["password"] == "s3cret"
        assert kwargs["use_tls"] is False
        assert kwargs["start_tls"] is True
        assert isinstance(kwargs["tls_context"], ssl.SSLContext)
        assert result.accepted == ["inbox@example.org"]
        assert result.rejected == []

    @pytest.mark.asyncio
    async def test_send_on_465_uses_implicit_tls(self):
        config = _make_config("465")
        transport = SmtpTransport(config)

        with patch("src.shared.contact.transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = ({}, "OK")
            await transport.send(_make_message(config))

        kwargs = mock_send.call_args.kwargs
        assert kwargs["use_tls"] is True
        assert kwargs["start_tls"] is False
        assert kwargs["tls_context"] is None

    @pytest.mark.asyncio
    async def test_message_id_is_generated_and_returned(self):
        config = _make_config()
        transport = SmtpTransport(config)
        message = _make_message(config)

        with patch("src.shared.contact.transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = ({}, "OK")
            result = await transport.send(message)

        assert result.message_id
        assert result.message_id == message["Message-ID"]
        assert result.message_id.endswith("@example.com>")

    @pytest.mark.asyncio
    async def test_refused_recipients_are_reported(self):
        config = _make_config()
        transport = SmtpTransport(config)

        with patch("src.shared.contact.transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = ({"inbox@example.org": MagicMock()}, "OK")
            result = await transport.send(_make_message(config))

        assert result.accepted == []
        assert result.rejected == ["inbox@example.org"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, code, command", [
        (aiosmtplib.SMTPAuthenticationError(535, "Authentication failed"), "EAUTH", "AUTH"),
        (aiosmtplib.SMTPSenderRefused(553, "Sender refused", "contact@example.com"), "EENVELOPE", "MAIL FROM"),
        (aiosmtplib.SMTPDataError(554, "Message rejected"), "EMESSAGE", "DATA"),
        (aiosmtplib.SMTPConnectError("Connection refused"), "ECONNECTION", "CONN"),
        (aiosmtplib.SMTPServerDisconnected("Server disconnected"), "ECONNECTION", "CONN"),
        (aiosmtplib.SMTPTimeoutError("Timed out"), "ETIMEDOUT", None),
        (aiosmtplib.SMTPResponseException(421, "Service not available"), "EPROTOCOL", None),
    ])
    async def test_transport_errors_become_send_failures(self, error, code, command):
        config = _make_config()
        transport = SmtpTransport(config)

        with patch("src.shared.contact.transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.side_effect = error
            with pytest.raises(SendFailure) as exc_info:
                await transport.send(_make_message(config))

        failure = exc_info.value
        assert failure.code == code
        assert failure.command == command
        assert failure.message
        assert failure.__cause__ is error

    @pytest.mark.asyncio
    async def test_response_exception_keeps_server_response(self):
        config = _make_config()
        transport = SmtpTransport(config)

        with patch("src.shared.contact.transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.side_effect = aiosmtplib.SMTPDataError(554, "5.7.1 Spam detected")
            with pytest.raises(SendFailure) as exc_info:
                await transport.send(_make_message(config))

        assert exc_info.value.message == "5.7.1 Spam detected"
        assert exc_info.value.response == "554 5.7.1 Spam detected"

    @pytest.mark.asyncio
    async def test_os_error_becomes_connection_failure(self):
        config = _make_config()
        transport = SmtpTransport(config)

        with patch("src.shared.contact.transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.side_effect = ConnectionResetError("reset by peer")
            with pytest.raises(SendFailure) as exc_info:
                await transport.send(_make_message(config))

        assert exc_info.value.code == "ECONNECTION"


class TestTransportManager:
    """TransportManager builds the handle once and reuses it."""

    @pytest.mark.asyncio
    async def test_handle_is_created_once_and_reused(self):
        loader = MagicMock(return_value=_make_config())
        manager = TransportManager(config_loader=loader)

        first = await manager.get_handle()
        second = await manager.get_handle()

        assert first is second
        assert isinstance(first, SmtpTransport)
        assert loader.call_count == 1
        assert manager.initialized

    @pytest.mark.asyncio
    async def test_concurrent_first_use_initializes_once(self):
        loader = MagicMock(return_value=_make_config())
        created = []

        def factory(config):
            created.append(config)
            return SmtpTransport(config)

        manager = TransportManager(config_loader=loader, transport_factory=factory)

        handles = await asyncio.gather(*(manager.get_handle() for _ in range(20)))

        assert len(created) == 1
        assert all(handle is handles[0] for handle in handles)

    @pytest.mark.asyncio
    async def test_configuration_error_is_wrapped(self):
        loader = MagicMock(side_effect=ConfigurationError("Missing SMTP_HOST"))
        manager = TransportManager(config_loader=loader)

        with pytest.raises(TransportInitError) as exc_info:
            await manager.get_handle()

        assert isinstance(exc_info.value.__cause__, ConfigurationError)
        assert not manager.initialized

    @pytest.mark.asyncio
    async def test_failed_initialization_is_retried_on_next_call(self):
        loader = MagicMock(side_effect=[ConfigurationError("Missing SMTP_PASS"), _make_config()])
        manager = TransportManager(config_loader=loader)

        with pytest.raises(TransportInitError):
            await manager.get_handle()
        handle = await manager.get_handle()

        assert isinstance(handle, SmtpTransport)
        assert loader.call_count == 2

    @pytest.mark.asyncio
    async def test_factory_failure_is_wrapped(self):
        manager = TransportManager(
            config_loader=MagicMock(return_value=_make_config()),
            transport_factory=MagicMock(side_effect=RuntimeError("boom")),
        )

        with pytest.raises(TransportInitError) as exc_info:
            await manager.get_handle()

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_cached_handle_survives_configuration_change(self):
        configs = [_make_config("587"), _make_config("465")]
        manager = TransportManager(config_loader=MagicMock(side_effect=configs))

        first = await manager.get_handle()
        second = await manager.get_handle()

        assert second.config.port == 587
        assert first is second

    @pytest.mark.asyncio
    async def test_reset_forces_rebuild(self):
        loader = MagicMock(return_value=_make_config())
        manager = TransportManager(config_loader=loader)

        first = await manager.get_handle()
        manager.reset()
        second = await manager.get_handle()

        assert first is not second
        assert loader.call_count == 2
