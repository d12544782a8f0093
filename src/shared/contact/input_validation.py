"""
Input validation and sanitization utilities for contact submissions.
Keeps free text bounded and free of control characters, and neutralizes
markup before anything is embedded in an HTML email.
"""

import re
import html
import unicodedata
from email.errors import HeaderParseError
from email.headerregistry import Address
from typing import Optional


# Maximum lengths for contact form fields
MAX_NAME_LENGTH = 100
MAX_SUBJECT_LENGTH = 200
MAX_MESSAGE_LENGTH = 5000
MAX_EMAIL_LENGTH = 254

# local@domain.tld, no whitespace, exactly one @
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

# C0/C1 control characters plus DEL
_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')
# Same, but tab and line breaks survive (multi-line fields)
_CONTROL_CHARS_MULTILINE = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')
# Unicode line/paragraph separators are treated as controls too
_UNICODE_SEPARATORS = re.compile("[\u2028\u2029]")


def clamp_and_trim(text, max_length: int, multiline: bool = False) -> str:
    """
    Normalize free text for use in an outbound email.

    Control characters are removed, surrounding whitespace trimmed and the
    result truncated to max_length. Line breaks are kept only when
    multiline is True; they are never allowed in header-bound fields
    (name, subject).

    Args:
        text: Raw user input (anything that is not a str yields "")
        max_length: Maximum length of the result
        multiline: Keep tabs and line breaks

    Returns:
        Clamped text, possibly empty
    """
    if not isinstance(text, str) or not text:
        return ""

    text = unicodedata.normalize("NFC", text)
    text = _UNICODE_SEPARATORS.sub("\n" if multiline else " ", text)
    if multiline:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = _CONTROL_CHARS_MULTILINE.sub("", text)
    else:
        text = re.sub(r'[\t\r\n]+', " ", text)
        text = _CONTROL_CHARS.sub("", text)

    text = text.strip()

    if max_length >= 0 and len(text) > max_length:
        text = text[:max_length]

    return text


def escape_for_markup(text: str) -> str:
    """
    Escape HTML-significant characters so text can be interpolated into markup.

    `&` is replaced first, so escaping an already escaped string escapes
    its entities again rather than leaving them alone.
    """
    if not isinstance(text, str) or not text:
        return ""
    return html.escape(text, quote=True)


def is_valid_email(email) -> bool:
    """Check the simple local@domain.tld shape used for contact addresses."""
    if not isinstance(email, str):
        return False
    return bool(EMAIL_PATTERN.match(email))


def parse_reply_address(email) -> Optional[Address]:
    """
    Parse a submitter address for use as a Reply-To header.

    Returns None unless the address is at most MAX_EMAIL_LENGTH characters,
    has the local@domain.tld shape, contains no control characters, and
    survives the RFC 5322 parser unchanged.
    """
    if not isinstance(email, str) or len(email) > MAX_EMAIL_LENGTH:
        return None
    if not is_valid_email(email) or _CONTROL_CHARS.search(email):
        return None
    try:
        address = Address(addr_spec=email)
    except (ValueError, IndexError, HeaderParseError):
        return None
    if address.addr_spec != email:
        return None
    return address
