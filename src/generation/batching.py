"""Numbered line protocol between the rewriter and the text service.

Request (one line per text)::

    [1] (heading) Old headline
    [2] (body) Old body text here.

Response (one line per id, anything else ignored)::

    [1] New headline
    [2] New body text here.

Texts are sent in batches of at most ``batch_size`` entries so no
single request outgrows the model's context or token limit.
"""

import math
import re
import textwrap

from src.markup.extraction import ExtractedText

DEFAULT_BATCH_SIZE = 30

_RESPONSE_LINE_RE = re.compile(r"^\s*\[(\d+)\]\s*(.*?)\s*$")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])")

# ── Prompts ─────────────────────────────────────────────────────────

SYSTEM_PROMPT = textwrap.dedent("""\
    You are a website copy rewriting engine.

    Task: rewrite short pieces of copy from the page "{page_title}" so
    they are specifically tailored to the niche: {niche}.

    Each input line has the form:
    [id] (context) original text

    The context tells you where the text appears on the page (heading,
    body, button label, list item, testimonial...).  Keep each rewrite
    appropriate for that role and roughly the same length as the
    original: a button label stays a short call to action, a heading
    stays a heading.

    RULES:
    1. Replace generic language with concrete, {niche}-specific
       terminology, services and value propositions.
    2. Do not invent regulated claims, guarantees, certifications or
       credentials that are not in the original.
    3. Do not add HTML, markdown, quotes or emphasis.
    4. Return exactly one line per input id, in this format:
       [id] rewritten text
    5. No commentary, no explanations, no extra lines.
""")

USER_PROMPT = textwrap.dedent("""\
    Rewrite these {count} texts for the niche "{niche}":

    {entries}
""")


def build_system_prompt(niche: str, page_title: str) -> str:
    """Instruction prompt naming the target niche and page."""
    return SYSTEM_PROMPT.format(niche=niche.strip(), page_title=page_title.strip())


def build_user_message(batch: list[ExtractedText], niche: str) -> str:
    """User message wrapping :func:`format_batch` output."""
    return USER_PROMPT.format(
        count=len(batch), niche=niche.strip(), entries=format_batch(batch)
    )


# ── Chunking ────────────────────────────────────────────────────────


def chunk_texts(
    texts: list[ExtractedText],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[list[ExtractedText]]:
    """Split *texts* into ordered batches of at most *batch_size*.

    Returns ``ceil(len(texts) / batch_size)`` batches; every text
    appears in exactly one of them and relative order is kept.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    count = math.ceil(len(texts) / batch_size)
    return [texts[i * batch_size:(i + 1) * batch_size] for i in range(count)]


# ── Format / parse ──────────────────────────────────────────────────


def format_entry(text: ExtractedText) -> str:
    # One line per entry: collapse newlines/indentation inside the text.
    return f"[{text.id}] ({text.context}) {' '.join(text.original.split())}"


def format_batch(batch: list[ExtractedText]) -> str:
    """Render *batch* as ``[{id}] ({context}) {original}`` lines."""
    return "\n".join(format_entry(text) for text in batch)


def strip_emphasis(text: str) -> str:
    """Replace ``**bold**`` and ``*italic*`` markers with their plain text."""
    text = _BOLD_RE.sub(r"\1", text)
    return _ITALIC_RE.sub(r"\1", text)


def parse_response(
    response: str,
    contexts: dict[int, str] | None = None,
) -> dict[int, str]:
    """Parse ``[{id}] {text}`` lines from a service response.

    Lines that do not match are ignored, as are empty values.  When
    *contexts* (id → context label) is given, a leading ``(context)``
    the model echoed back is removed.  Emphasis markers are stripped.

    Examples
    --------
    >>> parse_response("[1] Hello\\n[2] World\\nnot-a-line")
    {1: 'Hello', 2: 'World'}
    """
    parsed: dict[int, str] = {}
    for line in response.splitlines():
        match = _RESPONSE_LINE_RE.match(line)
        if match is None:
            continue
        text_id = int(match.group(1))
        value = match.group(2)
        if contexts and text_id in contexts:
            echoed = f"({contexts[text_id]})"
            if value.startswith(echoed):
                value = value[len(echoed):]
        value = strip_emphasis(value).strip()
        if value:
            parsed[text_id] = value
    return parsed
