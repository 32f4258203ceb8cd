"""Decide whether a piece of text is copy worth rewriting.

Pure functions, no state.  :func:`rejection_reason` returns a short
human-readable reason for the audit log; :func:`is_non_rewritable` is
the boolean form used everywhere else.

Rejected (incidental) text:

* shorter than :data:`MIN_TEXT_CHARS` once trimmed
* only digits, punctuation and whitespace (``"123"``, ``"—"``, ``"1/2"``)
* only HTML entities (``"&nbsp;&nbsp;"``)
* WordPress shortcodes, alone or repeated (``"[gallery ids=1,2]"``)
* a bare URL or email address
* a phone number (``"+1 (555) 010-2030"``)
* a currency amount (``"$49"``, ``"€1,299.00"``, ``"£9.99/mo"``)
"""

import re
from dataclasses import dataclass

MIN_TEXT_CHARS = 4

_PUNCT_ONLY_RE = re.compile(
    r"^[\d\s!-/:-@\[-`{-~©®·‐-‧™]+$"
)
_ENTITIES_ONLY_RE = re.compile(
    r"^(?:\s*&(?:#\d+|#x[0-9a-f]+|[a-z][a-z0-9]*);\s*)+$", re.IGNORECASE
)
_SHORTCODE_RE = re.compile(r"^(?:\s*\[/?[A-Za-z_][^\[\]]*\]\s*)+$")
_URL_RE = re.compile(r"^(?:https?://|www\.)\S+$", re.IGNORECASE)
_EMAIL_RE = re.compile(r"^(?:mailto:)?[\w.+-]+@[\w-]+(?:\.[\w-]+)+$", re.IGNORECASE)
_PHONE_RE = re.compile(r"^(?:tel:)?\+?[\d\s().-]{7,}$", re.IGNORECASE)
_CURRENCY_RE = re.compile(
    r"^(?:[$€£¥₹]\s?\d[\d,.]*|\d[\d,.]*\s?[$€£¥₹])"
    r"(?:\s?(?:/\s?[A-Za-z]+|[kKmM]|\+))?$"
)


def rejection_reason(text: str) -> str | None:
    """Return why *text* should not be rewritten, or ``None`` if it should."""
    stripped = text.strip()
    if len(stripped) < MIN_TEXT_CHARS:
        return f"shorter than {MIN_TEXT_CHARS} characters"
    if _ENTITIES_ONLY_RE.match(stripped):
        return "HTML entities only"
    if _SHORTCODE_RE.match(stripped):
        return "shortcode"
    if _URL_RE.match(stripped):
        return "URL"
    if _EMAIL_RE.match(stripped):
        return "email address"
    if _CURRENCY_RE.match(stripped):
        return "currency amount"
    if _PHONE_RE.match(stripped) and sum(ch.isdigit() for ch in stripped) >= 7:
        return "phone number"
    if _PUNCT_ONLY_RE.match(stripped):
        return "digits/punctuation only"
    return None


def is_non_rewritable(text: str) -> bool:
    """True if *text* is incidental (numbers, URLs, shortcodes, prices...)."""
    return rejection_reason(text) is not None


@dataclass
class TextDecision:
    """Audit record: one candidate text and whether it was sent for rewriting."""

    text: str
    accepted: bool
    reason: str | None
    context: str
    source: str  # "text_node" | "embedded"
    text_id: int | None = None
