"""Error taxonomy for the contact submission pipeline."""

from typing import Optional


class ContactError(Exception):
    """Base class for every classified contact pipeline failure."""
    status_code = 500
    public_message = "An unexpected error occurred. Please try again later."


class RateLimited(ContactError):
    """Caller exceeded the submission threshold for the current window."""
    status_code = 429
    public_message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int):
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")
        self.retry_after = retry_after


class BadRequest(ContactError):
    """Payload was malformed, incomplete or failed validation."""
    status_code = 400

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
        self.public_message = reason


class ConfigurationError(ContactError):
    """Outbound mail configuration is missing or invalid."""
    public_message = "Email service configuration error"


class TransportInitError(ContactError):
    """The mail transport handle could not be created."""
    public_message = "Failed to initialize email service"


class SendFailure(ContactError):
    """The mail transport rejected or failed the send."""
    public_message = "Failed to send email. Please try again later."

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        command: Optional[str] = None,
        response: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.command = command
        self.response = response

    def to_dict(self) -> dict:
        """Operator-facing detail, never sent to callers outside verbose mode."""
        return {
            "message": self.message,
            "code": self.code,
            "command": self.command,
            "response": self.response,
        }


class InternalError(ContactError):
    """Anything the pipeline did not classify."""
