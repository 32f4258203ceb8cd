"""Put rewritten copy back into a tokenized page.

Text nodes keep their own leading/trailing whitespace around the
trimmed rewrite; embedded attributes are written back through the
block's JSON payload.  Anything without a rewrite passes through
unchanged, so ``reassemble(tokenize(s), {}) == s``.
"""

import logging

from src.markup.embedded import EmbeddedText, rewrite_embedded_comment
from src.markup.tokenizer import Segment, join_segments

logger = logging.getLogger(__name__)


def substitute_text(raw: str, rewritten: str) -> str:
    """Swap the words of *raw* for *rewritten*, keeping *raw*'s padding."""
    stripped = raw.strip()
    if not stripped:
        return raw
    leading = raw[: len(raw) - len(raw.lstrip())]
    trailing = raw[len(raw.rstrip()):]
    return f"{leading}{rewritten.strip()}{trailing}"


def rewritten_segments(
    segments: list[Segment],
    rewrite_map: dict[int, str],
    embedded: list[EmbeddedText] | None = None,
) -> list[Segment]:
    """Return copies of *segments* with rewrites applied.

    The input segments are not modified.  Offsets on the returned
    segments still refer to the original document.
    """
    replacements: dict[int, str] = {}

    for index, seg in enumerate(segments):
        if seg.is_text and seg.text_id is not None and seg.text_id in rewrite_map:
            replacements[index] = substitute_text(seg.raw, rewrite_map[seg.text_id])

    for emb in embedded or []:
        if emb.id not in rewrite_map:
            continue
        raw = replacements.get(emb.segment_index, segments[emb.segment_index].raw)
        new_raw = rewrite_embedded_comment(raw, rewrite_map[emb.id])
        if new_raw is None:
            logger.warning(
                f"Embedded text {emb.id} no longer matches its block; left as-is"
            )
            continue
        replacements[emb.segment_index] = new_raw

    return [
        Segment(
            kind=seg.kind,
            start=seg.start,
            end=seg.end,
            raw=replacements.get(index, seg.raw),
            tag_name=seg.tag_name,
            is_closing=seg.is_closing,
            is_self_closing=seg.is_self_closing,
            text_id=seg.text_id,
        )
        for index, seg in enumerate(segments)
    ]


def unapplied_embedded_ids(
    segments: list[Segment],
    rewrite_map: dict[int, str],
    embedded: list[EmbeddedText] | None = None,
) -> list[int]:
    """Ids in *rewrite_map* whose embedded block cannot take the rewrite."""
    return [
        emb.id
        for emb in embedded or []
        if emb.id in rewrite_map
        and rewrite_embedded_comment(
            segments[emb.segment_index].raw, rewrite_map[emb.id]
        ) is None
    ]


def reassemble(
    segments: list[Segment],
    rewrite_map: dict[int, str],
    embedded: list[EmbeddedText] | None = None,
) -> str:
    """Apply *rewrite_map* to *segments* and rebuild the document string."""
    return join_segments(rewritten_segments(segments, rewrite_map, embedded))


def expected_segments(
    segments: list[Segment],
    rewrite_map: dict[int, str],
    embedded: list[EmbeddedText] | None = None,
) -> list[Segment]:
    """Original *segments* with only the embedded-attribute rewrites applied.

    This is the structure a correct rewrite must reproduce: text
    nodes may change freely, block comments only where their payload
    was meant to change.
    """
    updated = rewritten_segments(segments, rewrite_map, embedded)
    return [orig if orig.is_text else new for orig, new in zip(segments, updated)]
