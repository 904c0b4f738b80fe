#!/usr/bin/env python3
"""
Tests for structured-output parsing of model replies.

No network calls: judge verdicts and generation arrays are parsed from
literal strings.

Usage:
    python3 -m unittest tests.test_parsing -v
"""

import unittest

from eval_wizard.errors import ParseError
from eval_wizard.parsing import (
    NO_REASONING,
    UNPARSEABLE_VERDICT_REASONING,
    extract_json_array,
    parse_verdict,
    strip_code_fences,
)


class TestParseVerdict(unittest.TestCase):

    def test_pass_with_reasoning(self):
        verdict = parse_verdict("Reasoning: X\nVerdict: PASS")
        self.assertTrue(verdict.passed)
        self.assertEqual(verdict.reasoning, "X")

    def test_fail_with_multiline_reasoning(self):
        verdict = parse_verdict("Reasoning: First line.\nSecond line.\nVerdict: FAIL")
        self.assertFalse(verdict.passed)
        self.assertEqual(verdict.reasoning, "First line.\nSecond line.")

    def test_case_insensitive_and_markdown_bold(self):
        verdict = parse_verdict("**Reasoning:** Guided well.\n**Verdict:** pass")
        self.assertTrue(verdict.passed)
        self.assertEqual(verdict.reasoning, "Guided well.")

    def test_missing_verdict_marker_is_a_failure(self):
        verdict = parse_verdict("I think this looks fine overall.")
        self.assertFalse(verdict.passed)
        self.assertEqual(verdict.reasoning, UNPARSEABLE_VERDICT_REASONING)

    def test_empty_reply(self):
        verdict = parse_verdict("")
        self.assertFalse(verdict.passed)
        self.assertEqual(verdict.reasoning, UNPARSEABLE_VERDICT_REASONING)

    def test_verdict_without_reasoning(self):
        verdict = parse_verdict("Verdict: PASS")
        self.assertTrue(verdict.passed)
        self.assertEqual(verdict.reasoning, NO_REASONING)

    def test_first_verdict_wins(self):
        text = "Reasoning: Could be a PASS at first glance.\nVerdict: PASS\n\nOn reflection:\nVerdict: FAIL"
        verdict = parse_verdict(text)
        self.assertTrue(verdict.passed)
        self.assertEqual(verdict.reasoning, "Could be a PASS at first glance.")

    def test_pass_inside_word_is_not_a_verdict(self):
        verdict = parse_verdict("Reasoning: fine\nVerdict: PASSABLE")
        self.assertFalse(verdict.passed)
        self.assertEqual(verdict.reasoning, UNPARSEABLE_VERDICT_REASONING)


class TestJsonExtraction(unittest.TestCase):

    def test_strip_code_fences(self):
        self.assertEqual(strip_code_fences('```json\n{"a": 1}\n```'), '{"a": 1}')
        self.assertEqual(strip_code_fences('{"a": 1}'), '{"a": 1}')

    def test_array_wrapped_in_prose(self):
        raw = 'Here are the criteria:\n[{"name": "Clarity", "description": "Clear"}]\nHope this helps!'
        self.assertEqual(extract_json_array(raw), [{"name": "Clarity", "description": "Clear"}])

    def test_array_in_code_fence(self):
        raw = '```json\n[{"name": "A"}, {"name": "B"}]\n```'
        self.assertEqual([r["name"] for r in extract_json_array(raw)], ["A", "B"])

    def test_no_array(self):
        with self.assertRaises(ParseError):
            extract_json_array("Sorry, I can't help with that.")

    def test_invalid_json(self):
        with self.assertRaises(ParseError):
            extract_json_array("[{name: unquoted}]")

    def test_non_object_elements(self):
        with self.assertRaises(ParseError):
            extract_json_array('["just", "strings"]')


if __name__ == "__main__":
    unittest.main()
