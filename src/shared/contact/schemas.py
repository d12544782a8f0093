"""Pydantic schemas for the contact API and its mail transport."""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from src.shared.contact.input_validation import (
    MAX_NAME_LENGTH,
    MAX_SUBJECT_LENGTH,
    MAX_MESSAGE_LENGTH,
    MAX_EMAIL_LENGTH,
)


class SanitizedSubmission(BaseModel):
    """Contact submission after clamping; every field non-empty and bounded."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    email: str = Field(..., min_length=3, max_length=MAX_EMAIL_LENGTH)  # raw trimmed address, used as Reply-To
    subject: str = Field(..., min_length=1, max_length=MAX_SUBJECT_LENGTH)
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)


class TlsOptions(BaseModel):
    """TLS hardening applied to STARTTLS (port 587) connections."""
    model_config = ConfigDict(frozen=True)

    min_version: str = "TLSv1.2"
    reject_unauthorized: bool = True


class SmtpCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str
    password: str = Field(..., repr=False)


class TransportConfig(BaseModel):
    """Outbound SMTP connection parameters, immutable once loaded."""
    model_config = ConfigDict(frozen=True)

    host: str
    port: int
    secure: bool  # implicit TLS, only on port 465
    credentials: SmtpCredentials
    tls: Optional[TlsOptions] = None
    from_address: str
    to_address: str
    timeout: float = 30.0


class SendResult(BaseModel):
    """What the transport reports back after a successful send."""
    message_id: str
    accepted: List[str] = []
    rejected: List[str] = []


class SubmissionAccepted(BaseModel):
    """Terminal outcome: the message was handed to the transport."""
    message_id: str


class SubmissionRejected(BaseModel):
    """Terminal outcome: the request was refused or failed."""
    reason: str
    status_code: int
    retry_after: Optional[int] = None
    details: Optional[str] = None  # verbose mode only
    code: Optional[str] = None  # verbose mode only


class ContactResponse(BaseModel):
    """Schema for a successful contact submission response."""
    success: bool = True
    message: str = "Email sent successfully"
    messageId: str


class ContactErrorResponse(BaseModel):
    """Schema for a failed contact submission response."""
    error: str
    retryAfter: Optional[int] = None
    details: Optional[str] = None
    code: Optional[str] = None
