"""Collect every piece of copy on a page that should be rewritten.

Two paths feed one id space:

1. **Text nodes**: text segments outside verbatim containers that
   pass :func:`src.markup.filters.rejection_reason`.  Their segment's
   ``text_id`` is set.
2. **Embedded attributes**: ``text`` values inside self-closing
   block comments (:mod:`src.markup.embedded`).

Text-node ids come first (1, 2, ...), embedded ids continue after
them, so the combined list is ordered by id.
"""

import logging
from dataclasses import dataclass, field

from src.markup.context import ScopeTracker, classify_context
from src.markup.embedded import EmbeddedText, extract_embedded_texts
from src.markup.filters import TextDecision, rejection_reason
from src.markup.tokenizer import Segment

logger = logging.getLogger(__name__)

TEXT_NODE = "text_node"
EMBEDDED = "embedded"

FIRST_TEXT_ID = 1


@dataclass
class ExtractedText:
    """One rewritable string, whichever path it came from."""

    id: int
    segment_index: int
    original: str
    context: str
    source: str  # TEXT_NODE | EMBEDDED


@dataclass
class Extraction:
    """Everything extraction learned about one page."""

    texts: list[ExtractedText] = field(default_factory=list)
    embedded: list[EmbeddedText] = field(default_factory=list)
    decisions: list[TextDecision] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.texts)


def extract_text_nodes(
    segments: list[Segment],
    start_id: int = FIRST_TEXT_ID,
    decisions: list[TextDecision] | None = None,
) -> list[ExtractedText]:
    """Assign ids to rewritable text segments and return them in order."""
    scope = ScopeTracker()
    found: list[ExtractedText] = []
    next_id = start_id

    for index, seg in enumerate(segments):
        if not seg.is_text:
            scope.feed(seg)
            continue

        text = seg.raw.strip()
        if not text:
            continue

        verbatim = scope.verbatim_tag
        reason = (
            f"inside <{verbatim}>" if verbatim is not None
            else rejection_reason(text)
        )
        context = classify_context(segments, index)
        if reason is not None:
            if decisions is not None:
                decisions.append(TextDecision(
                    text=text, accepted=False, reason=reason,
                    context=context, source=TEXT_NODE,
                ))
            continue

        seg.text_id = next_id
        found.append(ExtractedText(
            id=next_id,
            segment_index=index,
            original=text,
            context=context,
            source=TEXT_NODE,
        ))
        if decisions is not None:
            decisions.append(TextDecision(
                text=text, accepted=True, reason="eligible",
                context=context, source=TEXT_NODE, text_id=next_id,
            ))
        next_id += 1

    return found


def extract_texts(segments: list[Segment]) -> Extraction:
    """Run both extraction paths over *segments*.

    Returns
    -------
    Extraction
        ``texts`` holds the combined, id-ordered list sent for
        rewriting; ``embedded`` keeps the block details reassembly
        needs; ``decisions`` records every accept/reject for the
        audit log.
    """
    extraction = Extraction()

    nodes = extract_text_nodes(segments, FIRST_TEXT_ID, extraction.decisions)
    next_id = FIRST_TEXT_ID + len(nodes)
    extraction.embedded = extract_embedded_texts(
        segments, next_id, extraction.decisions
    )

    extraction.texts = nodes + [
        ExtractedText(
            id=emb.id,
            segment_index=emb.segment_index,
            original=emb.original,
            context=emb.context,
            source=EMBEDDED,
        )
        for emb in extraction.embedded
    ]

    logger.debug(
        f"Extracted {len(nodes)} text node(s) and "
        f"{len(extraction.embedded)} embedded text(s)"
    )
    return extraction
