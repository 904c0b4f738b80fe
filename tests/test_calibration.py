#!/usr/bin/env python3
"""
Tests for calibration: few-shot selection and criteria derivation.

Usage:
    python3 -m unittest tests.test_calibration -v
"""

import json
import unittest

from eval_wizard.calibration import (
    CriteriaDeriver,
    fallback_criteria,
    select_few_shot_examples,
    summarize_conversation,
)
from eval_wizard.errors import PreconditionError
from eval_wizard.models import GradedExample, Message, Project, Verdict

from tests.fakes import fake_backend, failing, run_async

PROJECT = Project(id="p1", name="Math Tutor", description="Helps 5th graders with fractions", system_prompt="...")

TRANSCRIPT = (
    Message("user", "How do I add 1/2 and 1/3?"),
    Message("assistant", "What common denominator could you use?"),
    Message("user", "6?"),
    Message("assistant", "Exactly! Now convert each fraction."),
)


def graded(i, passed, reasoning="Graded"):
    return GradedExample(
        id=f"g{i}",
        project_id="p1",
        transcript=TRANSCRIPT,
        verdict=Verdict(passed=passed, reasoning=reasoning),
        persona_name="Struggling Student",
    )


def criteria_reply(records):
    return lambda messages, system_prompt: json.dumps(records)


class TestFewShotSelection(unittest.TestCase):

    def test_ten_passing_two_failing(self):
        examples = [graded(i, True) for i in range(10)] + [graded(10, False), graded(11, False)]
        selected = select_few_shot_examples(examples)

        passing = [e.id for e in selected if e.verdict.passed]
        failing = [e.id for e in selected if not e.verdict.passed]
        # floor(i * 10 / 4) for i in 0..3
        self.assertEqual(passing, ["g0", "g2", "g5", "g7"])
        self.assertEqual(failing, ["g10", "g11"])

    def test_small_classes_are_taken_whole(self):
        examples = [graded(0, True), graded(1, False)]
        self.assertEqual([e.id for e in select_few_shot_examples(examples)], ["g0", "g1"])

    def test_empty(self):
        self.assertEqual(select_few_shot_examples([]), [])


class TestCriteriaDeriver(unittest.TestCase):

    def setUp(self):
        self.examples = [graded(0, True), graded(1, True), graded(2, True), graded(3, False)]

    def test_derives_criteria_from_json(self):
        backend = fake_backend(criteria_reply([
            {"name": "Guides Without Telling", "description": "Asks leading questions.", "derivedFrom": "Passes asked questions"},
            {"name": "Encouraging Tone", "description": "Praises effort.", "derivedFrom": "Fails felt cold"},
        ]))
        criteria = run_async(CriteriaDeriver(backend).derive(PROJECT, self.examples))

        self.assertEqual([c.name for c in criteria], ["Guides Without Telling", "Encouraging Tone"])
        self.assertEqual(criteria[0].id, "custom-1-guides-without-telling")
        self.assertEqual(criteria[0].category, "custom")
        self.assertEqual(criteria[1].derived_from, "Fails felt cold")

        prompt = backend.gateway.calls[0]["messages"][0]["content"]
        self.assertIn("Math Tutor", prompt)
        self.assertIn('"grade": "FAIL"', prompt)
        self.assertEqual(backend.gateway.calls[0]["temperature"], 0.5)

    def test_unparseable_reply_falls_back_with_counts(self):
        backend = fake_backend(lambda m, s: "I could not identify clear patterns.")
        criteria = run_async(CriteriaDeriver(backend).derive(PROJECT, self.examples))

        self.assertEqual(len(criteria), 1)
        self.assertEqual(criteria[0].name, "Overall Quality")
        self.assertIn("3 passing and 1 failing", criteria[0].description)

    def test_gateway_error_falls_back(self):
        criteria = run_async(CriteriaDeriver(fake_backend(failing(500))).derive(PROJECT, self.examples))
        self.assertEqual(criteria, fallback_criteria(self.examples))

    def test_truncates_to_six_and_drops_incomplete_entries(self):
        records = [{"name": f"C{i}", "description": f"D{i}"} for i in range(8)]
        records.insert(0, {"name": "No description"})
        backend = fake_backend(criteria_reply(records))
        criteria = run_async(CriteriaDeriver(backend).derive(PROJECT, self.examples))
        self.assertEqual([c.name for c in criteria], ["C0", "C1", "C2", "C3", "C4", "C5"])
        self.assertEqual(criteria[-1].id, "custom-6-c5")

    def test_all_entries_incomplete_falls_back(self):
        backend = fake_backend(criteria_reply([{"name": "Only a name"}]))
        criteria = run_async(CriteriaDeriver(backend).derive(PROJECT, self.examples))
        self.assertEqual([c.id for c in criteria], ["custom-overall-quality"])

    def test_requires_graded_examples(self):
        deriver = CriteriaDeriver(fake_backend())
        with self.assertRaises(PreconditionError):
            run_async(deriver.derive(PROJECT, []))
        with self.assertRaises(PreconditionError):
            run_async(deriver.derive(PROJECT, self.examples + [graded(9, False, reasoning="  ")]))
        self.assertEqual(deriver.backend.gateway.calls, [])

    def test_calibrate(self):
        backend = fake_backend(criteria_reply([{"name": "Clarity", "description": "Clear steps."}]))
        output = run_async(CriteriaDeriver(backend).calibrate(PROJECT, self.examples))

        self.assertEqual(output.project_id, "p1")
        self.assertFalse(output.approved)
        self.assertEqual([c.name for c in output.criteria], ["Clarity"])
        self.assertEqual([e.id for e in output.few_shot_examples], ["g0", "g1", "g2", "g3"])


class TestSummary(unittest.TestCase):

    def test_summarize_conversation(self):
        summary = summarize_conversation(TRANSCRIPT)
        self.assertTrue(summary.startswith("2 user turns, 2 AI responses. Topics: How do I add"))


if __name__ == "__main__":
    unittest.main()
