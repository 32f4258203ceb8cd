"""Tag-nesting scope and call-site context for text segments.

:class:`ScopeTracker` keeps a stack of open tag names so text inside
verbatim containers (``<script>``, ``<style>``, ``<code>``...) is never
offered for rewriting.  It tolerates broken markup: a closing tag only
pops when it matches the top of the stack.

:func:`classify_context` labels a text segment with the role of the
element it sits in (heading, body, button label...) so the rewritten
copy stays appropriate for where it appears on the page.
"""

from src.markup.tokenizer import Segment

VERBATIM_TAGS = frozenset({"script", "style", "code", "pre", "svg", "math"})

# Elements that never have a closing tag, with or without "/>".
VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})

# ── Context labels ─────────────────────────────────────────────────
HEADING = "heading"
BODY = "body"
LINK_TEXT = "link text"
BUTTON_LABEL = "button label"
INLINE_TEXT = "inline text"
LIST_ITEM = "list item"
TESTIMONIAL = "testimonial"
CAPTION = "caption"
LABEL = "label"
TABLE_CELL = "table cell"
TEXT = "text"

TAG_CONTEXTS: dict[str, str] = {
    **{f"h{level}": HEADING for level in range(1, 7)},
    "p": BODY,
    "a": LINK_TEXT,
    "button": BUTTON_LABEL,
    "span": INLINE_TEXT,
    "li": LIST_ITEM,
    "blockquote": TESTIMONIAL,
    "figcaption": CAPTION,
    "label": LABEL,
    "td": TABLE_CELL,
    "th": TABLE_CELL,
}

# Checked in order against the lower-cased comment; first hit wins.
COMMENT_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("testimonial", "review"), TESTIMONIAL),
    (("heading",), HEADING),
    (("button",), BUTTON_LABEL),
    (("list",), LIST_ITEM),
)


def _is_container_open(seg: Segment) -> bool:
    return (
        seg.is_opening_tag
        and not seg.is_self_closing
        and seg.tag_name not in VOID_TAGS
    )


class ScopeTracker:
    """Stack of currently open tag names, fed one segment at a time."""

    def __init__(self):
        self.stack: list[str] = []

    def feed(self, seg: Segment) -> None:
        """Update the stack for *seg*; comments and text are ignored."""
        if not seg.is_tag:
            return
        if seg.is_closing:
            if self.stack and self.stack[-1] == seg.tag_name:
                self.stack.pop()
        elif _is_container_open(seg):
            self.stack.append(seg.tag_name)

    @property
    def verbatim_tag(self) -> str | None:
        """Innermost open verbatim container, or ``None``."""
        for name in reversed(self.stack):
            if name in VERBATIM_TAGS:
                return name
        return None

    @property
    def in_verbatim(self) -> bool:
        return self.verbatim_tag is not None


def comment_hint(raw: str) -> str | None:
    """Return the context hinted at by a block comment, if any."""
    lowered = raw.lower()
    for keywords, label in COMMENT_HINTS:
        if any(keyword in lowered for keyword in keywords):
            return label
    return None


def classify_context(segments: list[Segment], index: int) -> str:
    """Label the text at ``segments[index]`` with its semantic role.

    Walks backward from *index*.  The first opening container tag
    decides the label via :data:`TAG_CONTEXTS` (unknown tags give
    :data:`TEXT`).  A block comment met before any such tag wins
    instead when it carries a section hint; comments without a hint
    are passed over, as are closing, self-closing and void tags.
    """
    for seg in reversed(segments[:index]):
        if seg.is_comment:
            hint = comment_hint(seg.raw)
            if hint is not None:
                return hint
            continue
        if _is_container_open(seg):
            return TAG_CONTEXTS.get(seg.tag_name, TEXT)
    return TEXT
