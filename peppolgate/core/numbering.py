"""Document-number helpers for suggesting the next outgoing number."""

from __future__ import annotations

import re

from peppolgate.models.documents import DocumentKind, ParsedBillingDocument

_DIGIT_RUN = re.compile(r"[0-9]+")


def increment_document_number(value: str | None) -> str | None:
    """Increment the last run of ASCII digits in *value*.

    The digit run keeps its width (zero-padded) unless the increment needs
    more digits.  Returns ``None`` for empty input, input without digits, or
a digit run too long to convert to an integer.

    Examples
    --------
    >>> increment_document_number("INV-099")
    'INV-100'
    >>> increment_document_number("INV-999")
    'INV-1000'
    >>> increment_document_number("2024-0007/A")
    '2024-0008/A'
    """
    text = (value or "").strip()
    if not text:
        return None

    last: re.Match[str] | None = None
    for last in _DIGIT_RUN.finditer(text):
        pass
    if last is None:
        return None

    digits = last.group(0)
    try:
        incremented = str(int(digits) + 1)
    except ValueError:
        return None
    if len(incremented) < len(digits):
        incremented = incremented.zfill(len(digits))
    return text[: last.start()] + incremented + text[last.end():]


def extract_document_number(
    parsed: ParsedBillingDocument | None,
    kind: DocumentKind,
) -> str | None:
    """Return the document number of a parsed billing document, if any."""
    if parsed is None or not kind.is_billing:
        return None
    number = parsed.number.strip()
    return number or None
