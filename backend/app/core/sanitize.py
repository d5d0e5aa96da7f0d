"""Text sanitization utilities to prevent XSS attacks."""

import html
import re


def sanitize_text(value: str | None) -> str | None:
    """Sanitize user-supplied text to prevent stored XSS.

    HTML-escapes dangerous characters (&, <, >, ", ') so that
    user input is safe to render in a browser without being
    interpreted as HTML/JavaScript.
    """
    if value is None:
        return None
    return html.escape(value, quote=True)


def slugify(value: str) -> str:
    """Lowercase ``value`` and collapse every non-alphanumeric run into one dash."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
