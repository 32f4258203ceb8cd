"""Check that a rewrite left the page's markup untouched.

:func:`validate` re-tokenizes the rewritten document and runs four
independent comparisons against the original segments:

1. skeleton equality (text collapsed to a placeholder)
2. block-comment sequence equality
3. tag sequence equality
4. non-text segment count equality

Every failing check adds an error; the validator never raises and
never decides what to do about a failure.
"""

from dataclasses import dataclass, field

from src.markup.tokenizer import Segment, build_skeleton, tokenize

CONTEXT_CHARS = 40  # characters shown either side of a skeleton mismatch
VALUE_PREVIEW_CHARS = 80


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def _first_difference(a: str, b: str) -> int:
    for i, (ca, cb) in enumerate(zip(a, b)):
        if ca != cb:
            return i
    return min(len(a), len(b))


def _window(text: str, index: int) -> str:
    start = max(0, index - CONTEXT_CHARS)
    return repr(text[start:index + CONTEXT_CHARS])


def _preview(value: str) -> str:
    if len(value) > VALUE_PREVIEW_CHARS:
        value = value[:VALUE_PREVIEW_CHARS] + "…"
    return repr(value)


def _compare_sequences(name: str, original: list[str], rewritten: list[str]) -> list[str]:
    errors: list[str] = []
    if len(original) != len(rewritten):
        errors.append(
            f"{name} count changed: {len(original)} -> {len(rewritten)}"
        )
    for i, (before, after) in enumerate(zip(original, rewritten)):
        if before != after:
            errors.append(
                f"{name} #{i} changed: {_preview(before)} -> {_preview(after)}"
            )
            break
    return errors


def validate(original_segments: list[Segment], rewritten_content: str) -> ValidationResult:
    """Compare *rewritten_content*'s structure with *original_segments*.

    Parameters
    ----------
    original_segments : list[Segment]
        Segments of the document the rewrite must preserve.
    rewritten_content : str
        The reassembled document.

    Returns
    -------
    ValidationResult
        ``valid`` is True only when all four checks pass; ``errors``
        lists one message per failure, in check order.
    """
    rewritten_segments = tokenize(rewritten_content)
    errors: list[str] = []

    # 1. Skeleton
    original_skeleton = build_skeleton(original_segments)
    rewritten_skeleton = build_skeleton(rewritten_segments)
    if original_skeleton != rewritten_skeleton:
        at = _first_difference(original_skeleton, rewritten_skeleton)
        errors.append(
            f"Skeleton differs at index {at}: "
            f"original {_window(original_skeleton, at)} vs "
            f"rewritten {_window(rewritten_skeleton, at)}"
        )

    # 2. Block comments
    errors.extend(_compare_sequences(
        "Block comment",
        [s.raw for s in original_segments if s.is_comment],
        [s.raw for s in rewritten_segments if s.is_comment],
    ))

    # 3. Tags
    errors.extend(_compare_sequences(
        "Tag",
        [s.raw for s in original_segments if s.is_tag],
        [s.raw for s in rewritten_segments if s.is_tag],
    ))

    # 4. Non-text segment count
    original_count = sum(1 for s in original_segments if not s.is_text)
    rewritten_count = sum(1 for s in rewritten_segments if not s.is_text)
    if original_count != rewritten_count:
        errors.append(
            f"Non-text segment count changed: {original_count} -> {rewritten_count}"
        )

    return ValidationResult(valid=not errors, errors=errors)
