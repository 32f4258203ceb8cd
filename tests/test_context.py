"""Tests for src/markup/context.py and src/markup/extraction.py.

Covers the scope stack (verbatim containers, unbalanced markup),
context labelling, and combined text-node + embedded extraction.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.markup.context import (
    BODY,
    BUTTON_LABEL,
    CAPTION,
    HEADING,
    INLINE_TEXT,
    LINK_TEXT,
    LIST_ITEM,
    TABLE_CELL,
    TESTIMONIAL,
    TEXT,
    ScopeTracker,
    classify_context,
)
from src.markup.extraction import EMBEDDED, TEXT_NODE, extract_texts
from src.markup.tokenizer import tokenize


def _context_of(content: str, needle: str) -> str:
    """Context label of the first text segment containing *needle*."""
    segments = tokenize(content)
    for index, seg in enumerate(segments):
        if seg.is_text and needle in seg.raw:
            return classify_context(segments, index)
    raise AssertionError(f"{needle!r} not found in {content!r}")


# ── Scope tracker ──────────────────────────────────────────────────


class TestScopeTracker(unittest.TestCase):
    """The tag stack pushes, pops only on a match, and never raises."""

    def _feed_all(self, content: str) -> ScopeTracker:
        tracker = ScopeTracker()
        for seg in tokenize(content):
            tracker.feed(seg)
        return tracker

    def test_balanced_markup_empties_stack(self):
        tracker = self._feed_all("<div><p>Hi</p></div>")
        self.assertEqual(tracker.stack, [])

    def test_open_tags_remain(self):
        tracker = self._feed_all("<div><script>")
        self.assertEqual(tracker.stack, ["div", "script"])
        self.assertTrue(tracker.in_verbatim)
        self.assertEqual(tracker.verbatim_tag, "script")

    def test_mismatched_close_does_not_pop(self):
        tracker = self._feed_all("<div><p>text</span>")
        self.assertEqual(tracker.stack, ["div", "p"])

    def test_stray_close_on_empty_stack(self):
        tracker = self._feed_all("</p></div>")
        self.assertEqual(tracker.stack, [])

    def test_self_closing_and_void_tags_not_pushed(self):
        tracker = self._feed_all("<p>a<br>b<br/><img src='x.png'></p>")
        self.assertEqual(tracker.stack, [])

    def test_comments_ignored(self):
        tracker = self._feed_all("<!-- wp:code --><pre>")
        self.assertEqual(tracker.stack, ["pre"])


# ── Context classifier ─────────────────────────────────────────────


class TestClassifyContext(unittest.TestCase):
    """Labels come from the nearest opening tag or a hinting comment."""

    def test_tag_labels(self):
        cases = [
            ("<h1>Big title here</h1>", "Big", HEADING),
            ("<h4>Small title here</h4>", "Small", HEADING),
            ("<p>Body copy here</p>", "Body", BODY),
            ("<a href='/x'>Read the guide</a>", "Read", LINK_TEXT),
            ("<button>Get started</button>", "Get", BUTTON_LABEL),
            ("<span>Inline words</span>", "Inline", INLINE_TEXT),
            ("<ul><li>First point</li></ul>", "First", LIST_ITEM),
            ("<blockquote>Loved it!</blockquote>", "Loved", TESTIMONIAL),
            ("<figcaption>A photo</figcaption>", "photo", CAPTION),
            ("<table><tr><th>Plan</th><td>Cell copy</td></tr></table>", "Cell", TABLE_CELL),
            ("<div>Div copy here</div>", "Div", TEXT),
        ]
        for content, needle, expected in cases:
            with self.subTest(content=content):
                self.assertEqual(_context_of(content, needle), expected)

    def test_nearest_opening_tag_wins(self):
        content = "<p>Call <a href='#'>our office</a> today</p>"
        self.assertEqual(_context_of(content, "our office"), LINK_TEXT)

    def test_closing_tags_are_passed_over(self):
        content = "<p><strong>Bold</strong> then plain words</p>"
        self.assertEqual(_context_of(content, "then plain"), "text")

    def test_void_tag_is_passed_over(self):
        content = "<p>First line<br>Second line</p>"
        self.assertEqual(_context_of(content, "Second line"), BODY)

    def test_comment_hint_wins_before_tag(self):
        content = "<div><!-- wp:ns/testimonial -->What a great service"
        self.assertEqual(_context_of(content, "great service"), TESTIMONIAL)

    def test_comment_without_hint_is_passed_over(self):
        content = "<p><!-- wp:paragraph -->Plain body words"
        self.assertEqual(_context_of(content, "Plain body"), BODY)

    def test_comment_hints(self):
        cases = [
            ("<!-- wp:ns/review-card -->", TESTIMONIAL),
            ("<!-- wp:heading -->", HEADING),
            ("<!-- wp:buttons -->", BUTTON_LABEL),
            ("<!-- wp:list -->", LIST_ITEM),
        ]
        for comment, expected in cases:
            with self.subTest(comment=comment):
                self.assertEqual(_context_of(comment + "Some words", "Some"), expected)

    def test_default_is_text(self):
        self.assertEqual(_context_of("Just words at the top", "Just"), TEXT)


# ── Extraction ─────────────────────────────────────────────────────


class TestExtractTexts(unittest.TestCase):
    """Both extraction paths share one id space."""

    def test_ids_assigned_in_order(self):
        segments = tokenize("<h2>Old headline</h2><p>Old body text here.</p>")
        extraction = extract_texts(segments)
        self.assertEqual([t.id for t in extraction.texts], [1, 2])
        self.assertEqual([t.original for t in extraction.texts],
                         ["Old headline", "Old body text here."])
        self.assertEqual([t.context for t in extraction.texts], [HEADING, BODY])
        self.assertEqual(segments[1].text_id, 1)
        self.assertEqual(segments[4].text_id, 2)

    def test_script_and_style_text_never_extracted(self):
        content = (
            "<p>Visible paragraph copy</p>"
            "<script>var message = 'This is a long string of text';</script>"
            "<style>.hero { content: 'Another long string here'; }</style>"
        )
        segments = tokenize(content)
        extraction = extract_texts(segments)
        self.assertEqual([t.original for t in extraction.texts], ["Visible paragraph copy"])
        for seg in segments:
            if seg.is_text and ("var message" in seg.raw or ".hero" in seg.raw):
                self.assertIsNone(seg.text_id)

    def test_nested_verbatim_container(self):
        content = "<pre><span>Code-looking sample text</span></pre><p>After the block</p>"
        extraction = extract_texts(tokenize(content))
        self.assertEqual([t.original for t in extraction.texts], ["After the block"])

    def test_incidental_text_skipped(self):
        content = "<p>$499</p><p>123</p><a>https://example.com</a><p>Real copy here</p>"
        extraction = extract_texts(tokenize(content))
        self.assertEqual([t.original for t in extraction.texts], ["Real copy here"])

    def test_embedded_ids_follow_text_nodes(self):
        content = (
            '<!-- wp:ns/content {"text":"Embedded words","tagName":"h2"} /-->'
            "<p>Paragraph words</p>"
        )
        extraction = extract_texts(tokenize(content))
        self.assertEqual(extraction.total, 2)
        first, second = extraction.texts
        self.assertEqual((first.id, first.source), (1, TEXT_NODE))
        self.assertEqual((second.id, second.source), (2, EMBEDDED))
        self.assertEqual(second.context, "heading-h2")
        self.assertEqual(extraction.embedded[0].id, 2)

    def test_decisions_record_accept_and_reject(self):
        content = "<p>Real copy here</p><script>long script text here</script><p>42</p>"
        extraction = extract_texts(tokenize(content))
        accepted = [d for d in extraction.decisions if d.accepted]
        rejected = [d for d in extraction.decisions if not d.accepted]
        self.assertEqual(len(accepted), 1)
        self.assertEqual(accepted[0].text_id, 1)
        reasons = {d.text: d.reason for d in rejected}
        self.assertEqual(reasons["long script text here"], "inside <script>")
        self.assertIn("shorter", reasons["42"])

    def test_whitespace_only_text_not_recorded(self):
        extraction = extract_texts(tokenize("<div>\n  </div>"))
        self.assertEqual(extraction.decisions, [])
        self.assertEqual(extraction.total, 0)


if __name__ == "__main__":
    unittest.main()
