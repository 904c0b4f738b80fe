#!/usr/bin/env python3
"""
Tests for the built-in criteria catalog.

Usage:
    python3 -m unittest tests.test_criteria -v
"""

import os
import tempfile
import unittest
from pathlib import Path

from eval_wizard.criteria import builtin_criteria, get_criteria, load_catalog
from eval_wizard.models import Criterion

EXPECTED_IDS = [
    "pedagogically-sound",
    "age-appropriate",
    "critical-thinking",
    "inclusive",
    "handles-off-topic",
    "supportive",
    "accurate",
]


class TestCriteriaCatalog(unittest.TestCase):

    def test_builtin_catalog(self):
        catalog = builtin_criteria()
        self.assertIsInstance(catalog, tuple)
        self.assertEqual([c.id for c in catalog], EXPECTED_IDS)
        self.assertTrue(all(c.name and c.description for c in catalog))
        self.assertIs(builtin_criteria(), catalog)

    def test_get_criteria_keeps_catalog_order_and_ignores_unknown_ids(self):
        criteria = get_criteria(["accurate", "nope", "pedagogically-sound"])
        self.assertEqual([c.id for c in criteria], ["pedagogically-sound", "accurate"])

    def test_get_criteria_with_extra(self):
        derived = Criterion(id="custom-1-clarity", name="Clarity", description="Clear steps", category="custom")
        criteria = get_criteria(["custom-1-clarity", "supportive"], extra=[derived])
        self.assertEqual([c.id for c in criteria], ["supportive", "custom-1-clarity"])

    def test_load_custom_catalog(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "catalog.yaml"
            path.write_text(
                "criteria:\n"
                "  - id: concise\n"
                "    name: Concise\n"
                "    description: Keeps answers short\n",
                encoding="utf-8",
            )
            catalog = load_catalog(path)
        self.assertEqual(catalog, (Criterion(id="concise", name="Concise", description="Keeps answers short"),))

    def test_empty_catalog(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "empty.yaml")
            open(path, "w").close()
            self.assertEqual(load_catalog(Path(path)), ())


if __name__ == "__main__":
    unittest.main()
