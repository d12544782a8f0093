"""Contact routes for sending website contact form messages."""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from src.shared.contact.dependencies import get_submission_handler
from src.shared.contact.handler import ContactSubmissionHandler, SubmissionOutcome
from src.shared.contact.schemas import (
    ContactErrorResponse,
    ContactResponse,
    SubmissionAccepted,
)

router = APIRouter(prefix="/api/contact", tags=["contact"])


def outcome_to_response(outcome: SubmissionOutcome) -> JSONResponse:
    """Render a submission outcome as the JSON contract of the contact API."""
    if isinstance(outcome, SubmissionAccepted):
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=ContactResponse(messageId=outcome.message_id).model_dump(),
        )

    content = ContactErrorResponse(
        error=outcome.reason,
        retryAfter=outcome.retry_after,
        details=outcome.details,
        code=outcome.code,
    ).model_dump(exclude_none=True)

    headers = {}
    if outcome.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        headers["Retry-After"] = str(outcome.retry_after or 1)
        headers["X-RateLimit-Remaining"] = "0"

    return JSONResponse(status_code=outcome.status_code, content=content, headers=headers)


@router.post(
    "",
    response_model=ContactResponse,
    responses={
        400: {"model": ContactErrorResponse},
        429: {"model": ContactErrorResponse},
        500: {"model": ContactErrorResponse},
    },
)
async def submit_contact_form(
    request: Request,
    handler: ContactSubmissionHandler = Depends(get_submission_handler),
):
    """
    Submit a contact form message to the site owner.

    Body: JSON {name, email, subject, message}, all strings. The body is read
    by the handler itself so malformed input yields the contact API's own
    400 errors rather than framework validation errors.
    """
    outcome = await handler.handle(request)
    return outcome_to_response(outcome)
