import html
import re
from typing import Optional

_WHITESPACE_RE = re.compile(r'\s+')


def normalize_whitespace(text: Optional[str]) -> Optional[str]:
    """
    Strips the string and collapses internal runs of whitespace (spaces, tabs,
    newlines, non-breaking spaces) into a single space.
    Returns None for None or for strings that are empty after stripping.
    """
    if text is None:
        return None
    text = _WHITESPACE_RE.sub(' ', text).strip()
    return text or None


def clean_html_entities(text: Optional[str]) -> Optional[str]:
    """Converts HTML character references (&amp;, &nbsp;, &#39;...) to Unicode."""
    if text is None:
        return None
    return html.unescape(text)


def clean_and_normalize_text(text: Optional[str]) -> Optional[str]:
    """Entity decoding followed by whitespace normalization."""
    return normalize_whitespace(clean_html_entities(text))


PRICE_LABEL_RE = re.compile(r'^(?:precio(?:\s+total)?|valor)\s*:?\s*', re.IGNORECASE)
# "+ $1.800 cargo por servicio", "(+ cargo por servicio)"
SERVICE_CHARGE_RE = re.compile(
    r'\(?\s*\+\s*(?:\$\s*[\d.,]+\s*)?(?:de\s+)?cargos?\s+(?:por|de)\s+servicio\s*\)?',
    re.IGNORECASE,
)


def clean_price_text(text: Optional[str]) -> Optional[str]:
    """
    Drops the "Precio:"/"Valor:" label and any service-charge clause from a
    ticket price row, leaving only the ticket amounts.
    "Precio total: $15.000 + $1.800 cargo por servicio" -> "$15.000"
    """
    text = clean_and_normalize_text(text)
    if text is None:
        return None
    text = PRICE_LABEL_RE.sub('', text)
    text = SERVICE_CHARGE_RE.sub(' ', text)
    return normalize_whitespace(text)
