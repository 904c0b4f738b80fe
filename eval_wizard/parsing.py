"""
Eval Wizard - Structured Output Parsing

All parsing of free-text model replies lives here, so the output contracts
are defined once and can be tested without any network calls:

  - Judge replies:       "Reasoning: <text>\\nVerdict: PASS|FAIL"
  - Generation replies:  a JSON array of records, possibly wrapped in prose
                         or markdown code fences
"""

import json
import re
from typing import Any, Dict, List

from eval_wizard.errors import ParseError
from eval_wizard.models import Verdict

UNPARSEABLE_VERDICT_REASONING = (
    "Could not parse a PASS/FAIL verdict from the judge response; treating as FAIL."
)
NO_REASONING = "No reasoning provided"

_VERDICT_RE = re.compile(r"Verdict:\s*\**\s*(PASS|FAIL)\b", re.IGNORECASE)
_REASONING_RE = re.compile(r"Reasoning:\s*(.+?)(?=\n[\s*#]*Verdict:)", re.IGNORECASE | re.DOTALL)
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def parse_verdict(text: str) -> Verdict:
    """
    Parse a judge reply into a Verdict.

    Never raises: a reply without a recognizable verdict token is a failing
    verdict whose reasoning explains the parse failure.
    """
    text = text or ""
    marker = _VERDICT_RE.search(text)
    if not marker:
        return Verdict(passed=False, reasoning=UNPARSEABLE_VERDICT_REASONING)

    passed = marker.group(1).upper() == "PASS"

    match = _REASONING_RE.search(text)
    if match:
        reasoning = match.group(1).strip().strip("*").strip()
    else:
        reasoning = ""
    return Verdict(passed=passed, reasoning=reasoning or NO_REASONING)


def strip_code_fences(raw_text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if present."""
    text = raw_text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    return text


def extract_json_array(raw_text: str) -> List[Dict[str, Any]]:
    """
    Extract the JSON array of records embedded in a model reply.

    The outermost bracketed span is parsed; every element must be an object.

    Raises:
        ParseError: if no array is found, it isn't valid JSON, or it
            contains non-object elements.
    """
    text = strip_code_fences(raw_text or "")
    match = _ARRAY_RE.search(text)
    if not match:
        raise ParseError("No JSON array found in response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ParseError(f"Embedded array is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ParseError("Embedded JSON is not an array")
    if not all(isinstance(item, dict) for item in data):
        raise ParseError("Array elements must be JSON objects")
    return data
