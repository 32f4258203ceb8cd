"""Tests for src/generation/audit_log.py."""

import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.generation.audit_log import BatchExchange, log_page_rewrite, sanitize_filename
from src.markup.filters import TextDecision


class TestSanitizeFilename(unittest.TestCase):

    def test_basic(self):
        self.assertEqual(sanitize_filename("About Us"), "about_us")

    def test_special_characters_removed(self):
        self.assertEqual(sanitize_filename("FAQ: Pricing & Plans?"), "faq_pricing_plans")

    def test_truncated(self):
        self.assertEqual(len(sanitize_filename("word " * 40)), 50)

    def test_empty_falls_back(self):
        self.assertEqual(sanitize_filename("!!!"), "page")


class TestLogPageRewrite(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def _log(self, **kwargs) -> tuple[str, str]:
        kwargs.setdefault("page_title", "Home")
        kwargs.setdefault("niche", "dentist")
        kwargs.setdefault("status", "applied")
        kwargs.setdefault("texts_rewritten", 1)
        kwargs.setdefault("texts_total", 2)
        path = log_page_rewrite(logs_dir=self.tmpdir.name, **kwargs)
        with open(path, encoding="utf-8") as fh:
            return path, fh.read()

    def test_file_created_in_logs_dir(self):
        path, _ = self._log()
        self.assertEqual(os.path.dirname(path), self.tmpdir.name)
        self.assertTrue(path.endswith("_home_rewrite.log"))

    def test_header_fields(self):
        _, text = self._log(page_id=12, provider="huggingface", model="m",
                            elapsed_seconds=3.21)
        self.assertIn("CONFIG", text)
        self.assertIn("Page:         Home", text)
        self.assertIn("Page ID:      12", text)
        self.assertIn("Niche:        dentist", text)
        self.assertIn("Provider:     huggingface", text)
        self.assertIn("Status:       applied", text)
        self.assertIn("Rewritten:    1/2", text)
        self.assertIn("Elapsed:      3.2s", text)

    def test_config_block_uses_given_settings(self):
        _, text = self._log(config={"batch_size": 5, "dry_run": True,
                                    "validation_policy": "strict"})
        config_block = text.split("CONFIG", 1)[1].split("\n\n", 1)[0]
        self.assertIn("batch_size = 5", config_block)
        self.assertIn("dry_run = True", config_block)
        self.assertIn("validation_policy = strict", config_block)
        self.assertNotIn("llm_provider", config_block)

    def test_decisions_listed(self):
        decisions = [
            TextDecision("Welcome in", True, None, "heading", "text_node", text_id=1),
            TextDecision("$499", False, "currency amount", "body", "text_node"),
        ]
        _, text = self._log(decisions=decisions)
        self.assertIn("TEXTS (1 accepted, 1 rejected)", text)
        self.assertIn("ACCEPT [1]  (text_node, heading)", text)
        self.assertIn("REJECT  (text_node, body)  currency amount", text)
        self.assertIn("'$499'", text)

    def test_exchanges_logged_in_full(self):
        exchanges = [
            BatchExchange(1, 2, "SYSTEM PROMPT", "[1] (heading) Hi there",
                          response="[1] Hello there", parsed=1),
            BatchExchange(2, 2, "SYSTEM PROMPT", "[2] (body) More copy",
                          error="503 Service Unavailable"),
        ]
        _, text = self._log(exchanges=exchanges)
        self.assertIn("BATCH 1/2", text)
        self.assertIn("[1] (heading) Hi there", text)
        self.assertIn("Response (1 line(s) parsed):\n[1] Hello there", text)
        self.assertIn("BATCH 2/2", text)
        self.assertIn("ERROR: 503 Service Unavailable", text)

    def test_validation_and_errors_sections(self):
        _, text = self._log(validation_errors=["Tag count changed: 4 -> 6"],
                            errors=["Batch 2/2 failed: timeout"])
        self.assertIn("VALIDATION\n", text)
        self.assertIn("- Tag count changed: 4 -> 6", text)
        self.assertIn("ERRORS\n", text)
        self.assertIn("- Batch 2/2 failed: timeout", text)

    def test_sections_omitted_when_empty(self):
        _, text = self._log()
        self.assertNotIn("VALIDATION", text)
        self.assertNotIn("ERRORS", text)

    def test_same_second_collision_gets_suffix(self):
        first, _ = self._log()
        second, _ = self._log()
        self.assertNotEqual(first, second)
        self.assertTrue(os.path.isfile(first))
        self.assertTrue(os.path.isfile(second))

    def test_missing_logs_dir_created(self):
        nested = os.path.join(self.tmpdir.name, "nested", "logs")
        path = log_page_rewrite(page_title="Home", niche="dentist", status="failed",
                                texts_rewritten=0, texts_total=3, logs_dir=nested)
        self.assertTrue(os.path.isfile(path))


if __name__ == "__main__":
    unittest.main()
