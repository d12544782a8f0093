"""Email construction for contact form submissions."""

from email.headerregistry import Address
from email.message import EmailMessage

from src.shared.contact.input_validation import escape_for_markup
from src.shared.contact.schemas import SanitizedSubmission, TransportConfig

SUBJECT_TEMPLATE = "Nouveau message de {name} - {subject}"


def build_subject(submission: SanitizedSubmission) -> str:
    """Subject header from the clamped (unescaped) name and subject."""
    return SUBJECT_TEMPLATE.format(name=submission.name, subject=submission.subject)


def build_html_body(submission: SanitizedSubmission) -> str:
    """
    Render the HTML body for a contact submission.

    Every user-supplied value is escaped here, including the address used in
    the mailto link.
    """
    safe_name = escape_for_markup(submission.name)
    safe_email = escape_for_markup(submission.email)
    safe_subject = escape_for_markup(submission.subject)
    safe_message = escape_for_markup(submission.message)

    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2 style="color: #333;">Nouveau message depuis le formulaire de contact ANAE</h2>

    <div style="background: #f5f5f5; padding: 20px; border-radius: 5px; margin: 20px 0;">
        <p><strong>Nom:</strong> {safe_name}</p>
        <p><strong>Email:</strong> <a href="mailto:{safe_email}">{safe_email}</a></p>
        <p><strong>Sujet:</strong> {safe_subject}</p>
    </div>

    <div style="background: #fff; padding: 20px; border: 1px solid #ddd; border-radius: 5px;">
        <p><strong>Message:</strong></p>
        <p style="white-space: pre-wrap;">{safe_message}</p>
    </div>

    <p style="color: #666; font-size: 12px; margin-top: 20px;">
        Vous pouvez répondre directement à cet email pour contacter {safe_name}.
    </p>
</div>
"""


def build_text_body(submission: SanitizedSubmission) -> str:
    return f"""
Nouveau message depuis le formulaire de contact ANAE

Nom: {submission.name}
Email: {submission.email}
Sujet: {submission.subject}

Message:
{submission.message}

---
Vous pouvez répondre directement à cet email pour contacter {submission.name}.
"""


def build_contact_email(submission: SanitizedSubmission, config: TransportConfig) -> EmailMessage:
    """
    Build the outbound message for a sanitized submission.

    From is always the authenticated account, To the configured destination,
    and Reply-To the submitter's raw address so support can answer directly.
    """
    msg = EmailMessage()
    msg['From'] = config.from_address
    msg['To'] = config.to_address
    msg['Reply-To'] = Address(addr_spec=submission.email)
    msg['Subject'] = build_subject(submission)

    # Plain text first, HTML as the preferred alternative
    msg.set_content(build_text_body(submission))
    msg.add_alternative(build_html_body(submission), subtype='html')
    return msg
