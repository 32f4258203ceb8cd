"""Split page markup into a flat, gap-free stream of segments.

The tokenizer is a pattern-matching lexer, not a parser: block
comments (``<!-- ... -->``) and tags (``<p class="x">``, ``</p>``,
``<br/>``) are atomic opaque segments, and everything between them is
text.  Nothing here understands nesting; see
:mod:`src.markup.context` for the tag stack.

Invariant: ``"".join(s.raw for s in tokenize(content)) == content``
for every input string.  Malformed markup never raises: a stray
``<`` or an unterminated comment simply stays inside a text segment.
"""

import re
from dataclasses import dataclass

COMMENT = "comment"
TAG = "tag"
TEXT = "text"

# Single character standing in for every text segment in a skeleton.
TEXT_PLACEHOLDER = "\x00"

# Ordered alternation: comments first so "<!--" never lexes as a tag.
_TOKEN_RE = re.compile(
    r"(?P<comment><!--.*?-->)"
    r"|(?P<tag><(?P<closing>/?)(?P<name>[A-Za-z][A-Za-z0-9-]*)(?:[\s/][^>]*)?>)",
    re.DOTALL,
)


@dataclass
class Segment:
    """One atomic span of a tokenized document.

    ``kind`` is one of :data:`COMMENT`, :data:`TAG` or :data:`TEXT`.
    ``tag_name``/``is_closing``/``is_self_closing`` are only set on
    tags; ``text_id`` is assigned during extraction to text segments
    that were sent for rewriting.
    """

    kind: str
    start: int
    end: int
    raw: str
    tag_name: str | None = None
    is_closing: bool = False
    is_self_closing: bool = False
    text_id: int | None = None

    @property
    def is_text(self) -> bool:
        return self.kind == TEXT

    @property
    def is_comment(self) -> bool:
        return self.kind == COMMENT

    @property
    def is_tag(self) -> bool:
        return self.kind == TAG

    @property
    def is_opening_tag(self) -> bool:
        return self.kind == TAG and not self.is_closing


def _text(content: str, start: int, end: int) -> Segment:
    return Segment(kind=TEXT, start=start, end=end, raw=content[start:end])


def tokenize(content: str) -> list[Segment]:
    """Tokenize *content* into comment, tag and text segments.

    Parameters
    ----------
    content : str
        Raw page markup (HTML with block comments).

    Returns
    -------
    list[Segment]
        Contiguous, ordered segments covering *content* exactly.
        Text segments are never empty.
    """
    segments: list[Segment] = []
    pos = 0

    for match in _TOKEN_RE.finditer(content):
        start, end = match.span()
        if start > pos:
            segments.append(_text(content, pos, start))

        raw = match.group(0)
        if match.group("comment") is not None:
            segments.append(Segment(kind=COMMENT, start=start, end=end, raw=raw))
        else:
            is_closing = bool(match.group("closing"))
            segments.append(Segment(
                kind=TAG,
                start=start,
                end=end,
                raw=raw,
                tag_name=match.group("name").lower(),
                is_closing=is_closing,
                is_self_closing=not is_closing and raw.endswith("/>"),
            ))
        pos = end

    if pos < len(content):
        segments.append(_text(content, pos, len(content)))

    return segments


def join_segments(segments: list[Segment]) -> str:
    """Concatenate the raw content of *segments* in order."""
    return "".join(seg.raw for seg in segments)


def build_skeleton(segments: list[Segment]) -> str:
    """Return the document structure with every text segment collapsed.

    Each text segment becomes :data:`TEXT_PLACEHOLDER`; comments and
    tags keep their raw content.  Two documents that differ only in
    the wording of their text nodes have identical skeletons.
    """
    return "".join(
        TEXT_PLACEHOLDER if seg.is_text else seg.raw for seg in segments
    )
