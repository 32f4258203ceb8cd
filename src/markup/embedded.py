"""Visible copy stored as JSON inside self-closing block comments.

Some page builders keep headings and paragraphs in the block's
attribute payload rather than between tags::

    <!-- wp:ns/content {"text":"Hello","tagName":"h2"} /-->

:func:`extract_embedded_texts` pulls the ``text`` attribute out of
such comments, and :func:`rewrite_embedded_comment` puts a new value
back by parsing, mutating and re-serialising the payload, so every
other key keeps its value and position.  Payloads that are not valid
JSON objects are skipped without complaint.
"""

import json
import logging
import re
from dataclasses import dataclass

from src.markup.filters import TextDecision, rejection_reason
from src.markup.tokenizer import Segment

logger = logging.getLogger(__name__)

TEXT_ATTRIBUTE = "text"

_EMBEDDED_BLOCK_RE = re.compile(
    r"^(?P<prefix><!--\s+wp:(?P<block>[a-z0-9_-]+/[a-z0-9_-]+)\s+)"
    r"(?P<payload>\{.*\})"
    r"(?P<suffix>\s*/-->)$",
    re.DOTALL,
)

_HEADING_TAGS = frozenset(f"h{level}" for level in range(1, 7))

# An escaped quote is a backslash-quote preceded by an even run of backslashes.
_ESCAPED_QUOTE_RE = re.compile(r'(?<!\\)((?:\\\\)*)\\"')


@dataclass
class EmbeddedText:
    """One rewritable ``text`` attribute found in a block comment."""

    id: int
    segment_index: int
    original: str
    context: str
    block_name: str
    attribute: str = TEXT_ATTRIBUTE


def _unicode_escape(text: str) -> str:
    return "".join(f"\\u{ord(ch):04x}" for ch in text)


def serialize_block_attributes(attrs: dict) -> str:
    """Serialise *attrs* the way WordPress writes block comment payloads.

    Compact JSON with unicode left as-is; ``--``, ``<``, ``>``, ``&``
    and escaped quotes are written as unicode escapes so the payload
    can never close the surrounding comment.
    """
    encoded = json.dumps(attrs, ensure_ascii=False, separators=(",", ":"))
    encoded = encoded.replace("--", _unicode_escape("--"))
    for ch in "<>&":
        encoded = encoded.replace(ch, _unicode_escape(ch))
    return _ESCAPED_QUOTE_RE.sub(
        lambda m: m.group(1) + _unicode_escape('"'), encoded
    )


def _parse_block(raw: str):
    """Return ``(match, payload)`` for an embedded-text block, else ``None``."""
    match = _EMBEDDED_BLOCK_RE.match(raw)
    if match is None:
        return None
    try:
        payload = json.loads(match.group("payload"))
    except json.JSONDecodeError:
        logger.debug(f"Skipping block with malformed JSON: {raw[:80]!r}")
        return None
    if not isinstance(payload, dict) or not isinstance(
        payload.get(TEXT_ATTRIBUTE), str
    ):
        return None
    return match, payload


def block_context(block_name: str, payload: dict) -> str:
    """Context label for a block: its type name, refined by ``tagName``."""
    tag_name = str(payload.get("tagName", "")).lower()
    if tag_name in _HEADING_TAGS:
        return f"heading-{tag_name}"
    if tag_name == "p":
        return "paragraph"
    return block_name.rsplit("/", 1)[-1]


def extract_embedded_texts(
    segments: list[Segment],
    start_id: int,
    decisions: list[TextDecision] | None = None,
) -> list[EmbeddedText]:
    """Find rewritable ``text`` attributes in self-closing block comments.

    Parameters
    ----------
    segments : list[Segment]
        Output of :func:`src.markup.tokenizer.tokenize`.
    start_id : int
        Id for the first accepted text; later ones count up from it.
    decisions : list[TextDecision], optional
        When given, one accept/reject record per candidate is appended.

    Returns
    -------
    list[EmbeddedText]
        Accepted texts in document order.
    """
    found: list[EmbeddedText] = []
    next_id = start_id

    for index, seg in enumerate(segments):
        if not seg.is_comment:
            continue
        parsed = _parse_block(seg.raw)
        if parsed is None:
            continue
        match, payload = parsed

        text = payload[TEXT_ATTRIBUTE].strip()
        context = block_context(match.group("block"), payload)
        reason = "empty" if not text else rejection_reason(text)
        if reason is not None:
            if decisions is not None and text:
                decisions.append(TextDecision(
                    text=text, accepted=False, reason=reason,
                    context=context, source="embedded",
                ))
            continue

        found.append(EmbeddedText(
            id=next_id,
            segment_index=index,
            original=text,
            context=context,
            block_name=match.group("block"),
        ))
        if decisions is not None:
            decisions.append(TextDecision(
                text=text, accepted=True, reason="eligible",
                context=context, source="embedded", text_id=next_id,
            ))
        next_id += 1

    return found


def rewrite_embedded_comment(raw: str, new_text: str) -> str | None:
    """Return *raw* with its payload's ``text`` set to *new_text*.

    The whole payload goes through :func:`serialize_block_attributes`,
    so other keys keep their values and order but may change bytes:
    a literal ``&`` in a sibling value comes back unicode-escaped,
    exactly as WordPress would save it.

    Returns ``None`` if *raw* is not an embedded-text block (or its
    payload no longer parses), so callers can leave it untouched.
    """
    parsed = _parse_block(raw)
    if parsed is None:
        return None
    match, payload = parsed
    payload[TEXT_ATTRIBUTE] = new_text
    return (
        match.group("prefix")
        + serialize_block_attributes(payload)
        + match.group("suffix")
    )
