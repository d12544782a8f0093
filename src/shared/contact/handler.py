"""Contact submission pipeline: rate check, validation, sanitization and send."""

import logging
from typing import Union

from fastapi import Request

from src.shared.contact.email_utils import build_contact_email
from src.shared.contact.errors import (
    BadRequest,
    ConfigurationError,
    ContactError,
    InternalError,
    RateLimited,
    SendFailure,
    TransportInitError,
)
from src.shared.contact.input_validation import (
    MAX_MESSAGE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_SUBJECT_LENGTH,
    clamp_and_trim,
    parse_reply_address,
)
from src.shared.contact.rate_limit import RateLimiter, get_client_ip
from src.shared.contact.schemas import (
    SanitizedSubmission,
    SubmissionAccepted,
    SubmissionRejected,
)
from src.shared.contact.transport import TransportManager

REQUIRED_FIELDS = ("name", "email", "subject", "message")

SubmissionOutcome = Union[SubmissionAccepted, SubmissionRejected]


class ContactSubmissionHandler:
    """
    Runs one contact submission from admission to send.

    Every request ends in exactly one SubmissionOutcome. Classified failures
    map to their own status and message; anything else becomes a generic 500,
    so no exception or stack trace reaches the caller.

    verbose_errors is the only switch for exposing transport failure detail
    and for logging configuration summaries.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        transport_manager: TransportManager,
        verbose_errors: bool = False,
    ):
        self.rate_limiter = rate_limiter
        self.transport_manager = transport_manager
        self.verbose_errors = verbose_errors

    async def handle(self, request: Request) -> SubmissionOutcome:
        try:
            return await self._process(request)
        except ContactError as e:
            return self._reject(e)
        except Exception as e:
            logging.error(f"Unexpected error in contact submission: {str(e)}", exc_info=True)
            return SubmissionRejected(
                reason=InternalError.public_message,
                status_code=InternalError.status_code,
            )

    async def _process(self, request: Request) -> SubmissionAccepted:
        client_ip = get_client_ip(request)
        decision = self.rate_limiter.check(client_ip)
        if not decision.allowed:
            logging.warning(f"Contact rate limit exceeded for {client_ip}")
            raise RateLimited(decision.remaining_time)

        body = await self._parse_body(request)
        submission = self._validate(body)

        transport = await self.transport_manager.get_handle()
        config = transport.config
        if self.verbose_errors:
            logging.info(
                f"Email config loaded: host={config.host} port={config.port} "
                f"from={config.from_address} to={config.to_address}"
            )

        message = build_contact_email(submission, config)
        result = await transport.send(message)

        logging.info(
            f"Contact form email sent: message_id={result.message_id} "
            f"accepted={result.accepted} rejected={result.rejected}"
        )
        return SubmissionAccepted(message_id=result.message_id)

    async def _parse_body(self, request: Request) -> dict:
        try:
            body = await request.json()
        except ValueError:
            raise BadRequest("Invalid request body")
        if not isinstance(body, dict):
            raise BadRequest("Invalid request body")
        return body

    def _validate(self, body: dict) -> SanitizedSubmission:
        """Presence, type, emptiness and email address checks, in that order."""
        values = {field: body.get(field) for field in REQUIRED_FIELDS}

        if any(not value for value in values.values()):
            raise BadRequest("All fields are required")

        if any(not isinstance(value, str) for value in values.values()):
            raise BadRequest("Invalid field types")

        name = clamp_and_trim(values["name"], MAX_NAME_LENGTH)
        subject = clamp_and_trim(values["subject"], MAX_SUBJECT_LENGTH)
        message = clamp_and_trim(values["message"], MAX_MESSAGE_LENGTH, multiline=True)

        if not name:
            raise BadRequest("Name cannot be empty")
        if not subject:
            raise BadRequest("Subject cannot be empty")
        if not message:
            raise BadRequest("Message cannot be empty")

        email = values["email"].strip()
        if parse_reply_address(email) is None:
            raise BadRequest("Invalid email address")

        return SanitizedSubmission(name=name, email=email, subject=subject, message=message)

    def _reject(self, error: ContactError) -> SubmissionRejected:
        if isinstance(error, RateLimited):
            return SubmissionRejected(
                reason=error.public_message,
                status_code=error.status_code,
                retry_after=error.retry_after,
            )

        if isinstance(error, BadRequest):
            logging.info(f"Contact submission rejected: {error.reason}")
            return SubmissionRejected(reason=error.public_message, status_code=error.status_code)

        if isinstance(error, (TransportInitError, ConfigurationError)):
            logging.error(f"Email transport unavailable: {str(error)}", exc_info=self.verbose_errors)
            if isinstance(error, ConfigurationError) or isinstance(error.__cause__, ConfigurationError):
                reason = ConfigurationError.public_message
            else:
                reason = TransportInitError.public_message
            return SubmissionRejected(reason=reason, status_code=500)

        if isinstance(error, SendFailure):
            detail = error.to_dict()
            logging.error(f"Email sending error: {detail}", exc_info=self.verbose_errors)
            rejected = SubmissionRejected(reason=error.public_message, status_code=error.status_code)
            if self.verbose_errors:
                rejected.details = error.message
                rejected.code = error.code
            return rejected

        logging.error(f"Unclassified contact error: {str(error)}", exc_info=True)
        return SubmissionRejected(
            reason=InternalError.public_message,
            status_code=InternalError.status_code,
        )
