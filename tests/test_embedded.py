"""Tests for src/markup/embedded.py.

Covers which block comments qualify, context refinement from
``tagName``, malformed JSON handling, and payload re-serialisation.
"""

import json
import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.markup.embedded import (
    block_context,
    extract_embedded_texts,
    rewrite_embedded_comment,
    serialize_block_attributes,
)
from src.markup.tokenizer import tokenize


def _payload(comment: str) -> dict:
    start = comment.index("{")
    end = comment.rindex("}") + 1
    return json.loads(comment[start:end])


class TestExtractEmbeddedTexts(unittest.TestCase):
    """Only self-closing namespaced blocks with a string ``text`` qualify."""

    def test_extracts_text_attribute(self):
        segments = tokenize('<!-- wp:ns/content {"text":"Hello","tagName":"h2"} /-->')
        found = extract_embedded_texts(segments, start_id=7)
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].id, 7)
        self.assertEqual(found[0].original, "Hello")
        self.assertEqual(found[0].context, "heading-h2")
        self.assertEqual(found[0].block_name, "ns/content")
        self.assertEqual(found[0].attribute, "text")
        self.assertEqual(found[0].segment_index, 0)

    def test_ids_are_sequential(self):
        content = (
            '<!-- wp:ns/a {"text":"First block"} /-->'
            '<!-- wp:ns/b {"text":"Second block"} /-->'
        )
        found = extract_embedded_texts(tokenize(content), start_id=3)
        self.assertEqual([f.id for f in found], [3, 4])

    def test_text_is_trimmed(self):
        found = extract_embedded_texts(
            tokenize('<!-- wp:ns/a {"text":"  Padded words  "} /-->'), 1
        )
        self.assertEqual(found[0].original, "Padded words")

    def test_non_namespaced_block_ignored(self):
        found = extract_embedded_texts(
            tokenize('<!-- wp:heading {"text":"Not embedded"} /-->'), 1
        )
        self.assertEqual(found, [])

    def test_non_self_closing_block_ignored(self):
        found = extract_embedded_texts(
            tokenize('<!-- wp:ns/a {"text":"Has children"} -->'), 1
        )
        self.assertEqual(found, [])

    def test_missing_or_non_string_text_ignored(self):
        content = (
            '<!-- wp:ns/a {"title":"No text key"} /-->'
            '<!-- wp:ns/b {"text":42} /-->'
        )
        self.assertEqual(extract_embedded_texts(tokenize(content), 1), [])

    def test_malformed_json_skipped_silently(self):
        content = (
            '<!-- wp:ns/a {"text":"Broken",} /-->'
            '<!-- wp:ns/b {"text":"Still fine"} /-->'
        )
        found = extract_embedded_texts(tokenize(content), 1)
        self.assertEqual([f.original for f in found], ["Still fine"])

    def test_incidental_and_empty_rejected(self):
        content = (
            '<!-- wp:ns/a {"text":"$499"} /-->'
            '<!-- wp:ns/b {"text":"   "} /-->'
            '<!-- wp:ns/c {"text":"Real words"} /-->'
        )
        decisions = []
        found = extract_embedded_texts(tokenize(content), 1, decisions)
        self.assertEqual([f.original for f in found], ["Real words"])
        self.assertEqual([d.accepted for d in decisions], [False, True])
        self.assertEqual(decisions[0].reason, "currency amount")


class TestBlockContext(unittest.TestCase):

    def test_heading_tag(self):
        self.assertEqual(block_context("ns/content", {"tagName": "H3"}), "heading-h3")

    def test_paragraph_tag(self):
        self.assertEqual(block_context("ns/content", {"tagName": "p"}), "paragraph")

    def test_falls_back_to_block_type(self):
        self.assertEqual(block_context("uagb/advanced-heading", {}), "advanced-heading")
        self.assertEqual(block_context("ns/info-box", {"tagName": "div"}), "info-box")


class TestRewriteEmbeddedComment(unittest.TestCase):
    """Only ``text`` changes; other keys keep value and order."""

    def test_text_replaced_other_keys_kept_in_order(self):
        raw = '<!-- wp:ns/content {"text":"Hello","tagName":"h2"} /-->'
        result = rewrite_embedded_comment(raw, "Welcome")
        self.assertEqual(
            result, '<!-- wp:ns/content {"text":"Welcome","tagName":"h2"} /-->'
        )

    def test_key_order_with_text_in_middle(self):
        raw = '<!-- wp:ns/box {"align":"center","text":"Old copy","level":3,"style":{"color":"red"}} /-->'
        result = rewrite_embedded_comment(raw, "New copy")
        self.assertEqual(
            list(_payload(result).keys()), ["align", "text", "level", "style"]
        )
        self.assertEqual(_payload(result)["style"], {"color": "red"})
        self.assertEqual(_payload(result)["text"], "New copy")

    def test_prefix_and_suffix_preserved(self):
        raw = '<!--  wp:ns/content  {"text":"Hello"}   /-->'
        result = rewrite_embedded_comment(raw, "Welcome")
        self.assertTrue(result.startswith("<!--  wp:ns/content  {"))
        self.assertTrue(result.endswith("}   /-->"))

    def test_unsafe_characters_cannot_close_comment(self):
        raw = '<!-- wp:ns/content {"text":"Hello"} /-->'
        result = rewrite_embedded_comment(raw, 'Fish & chips --> <b>"best"</b>')
        segments = tokenize(result)
        self.assertEqual(len(segments), 1)
        self.assertTrue(segments[0].is_comment)
        self.assertEqual(_payload(result)["text"], 'Fish & chips --> <b>"best"</b>')

    def test_other_values_are_reescaped(self):
        # The whole payload is re-serialised: equal JSON, not equal bytes.
        raw = '<!-- wp:ns/content {"text":"Hi","url":"a&b"} /-->'
        result = rewrite_embedded_comment(raw, "Hello")
        backslash = chr(92)
        self.assertIn('"url":"a' + backslash + 'u0026b"', result)
        self.assertNotIn('"url":"a&b"', result)
        self.assertEqual(_payload(result), {"text": "Hello", "url": "a&b"})

    def test_non_embedded_comment_returns_none(self):
        self.assertIsNone(rewrite_embedded_comment("<!-- wp:paragraph -->", "x"))


class TestSerializeBlockAttributes(unittest.TestCase):

    def test_compact_and_unicode_unescaped(self):
        self.assertEqual(
            serialize_block_attributes({"text": "Café", "n": 1}), '{"text":"Café","n":1}'
        )

    def test_round_trips_through_json(self):
        attrs = {"text": 'a--b <c> & "d" \\ e\\', "nested": {"k": [1, 2]}}
        self.assertEqual(json.loads(serialize_block_attributes(attrs)), attrs)

    def test_no_raw_markup_characters(self):
        encoded = serialize_block_attributes({"text": "<a> & -- b"})
        for fragment in ("<", ">", "&", "--"):
            self.assertNotIn(fragment, encoded)


if __name__ == "__main__":
    unittest.main()
