"""
Eval Wizard - Calibration

Turns a batch of human-graded example conversations into:
  1. A small set of named criteria summarizing the user's implicit rubric
     (one LLM call with a strict JSON-array output contract and a
     deterministic fallback, so calibration never returns zero criteria)
  2. A class-balanced few-shot subset used to condition the judge on every
     later evaluation run for the project
"""

import logging
import re
from typing import List, Optional, Sequence

from eval_wizard.errors import PreconditionError
from eval_wizard.gateway import ModelBackend
from eval_wizard.models import CalibrationOutput, Criterion, GradedExample, Message, Project
from eval_wizard.parsing import extract_json_array
from eval_wizard.prompts import build_criteria_derivation_prompt

logger = logging.getLogger(__name__)

MIN_DERIVED_CRITERIA = 4
MAX_DERIVED_CRITERIA = 6
FEW_SHOT_PER_CLASS = 4


def summarize_conversation(transcript: Sequence[Message]) -> str:
    """Short content digest of a conversation for the derivation prompt."""
    user_messages = [m for m in transcript if m.role == "user"]
    ai_messages = [m for m in transcript if m.role == "assistant"]
    topics = "; ".join(m.content[:50] for m in user_messages[:2])
    return f"{len(user_messages)} user turns, {len(ai_messages)} AI responses. Topics: {topics}..."


def _even_stride(items: Sequence[GradedExample], limit: int) -> List[GradedExample]:
    count = min(limit, len(items))
    return [items[(i * len(items)) // count] for i in range(count)]


def select_few_shot_examples(
    examples: Sequence[GradedExample],
    per_class: int = FEW_SHOT_PER_CLASS,
) -> List[GradedExample]:
    """
    Pick up to ``per_class`` passing and ``per_class`` failing examples,
    spread evenly across each class rather than taking the first N.
    """
    passes = [e for e in examples if e.verdict.passed]
    fails = [e for e in examples if not e.verdict.passed]
    return _even_stride(passes, per_class) + _even_stride(fails, per_class)


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "criterion"


def fallback_criteria(examples: Sequence[GradedExample]) -> List[Criterion]:
    """The single generic criterion used when derivation fails."""
    pass_count = sum(1 for e in examples if e.verdict.passed)
    fail_count = len(examples) - pass_count
    return [
        Criterion(
            id="custom-overall-quality",
            name="Overall Quality",
            description=(
                "Evaluates whether the AI's responses meet the user's expectations for quality, "
                "appropriateness, and effectiveness, as reflected in "
                f"{pass_count} passing and {fail_count} failing graded conversations."
            ),
            category="custom",
            derived_from=f"Based on {pass_count} passing and {fail_count} failing conversations from user feedback.",
        )
    ]


class CriteriaDeriver:
    """
    Derives personalized criteria from graded examples.

    Usage:
        deriver = CriteriaDeriver(judge_backend)
        criteria = await deriver.derive(project, graded_examples)
    """

    def __init__(self, backend: ModelBackend, temperature: float = 0.5):
        self.backend = backend
        self.temperature = temperature

    @staticmethod
    def check_ready(examples: Sequence[GradedExample]) -> None:
        """
        Raises:
            PreconditionError: if there are no examples or any lacks reasoning
        """
        if not examples:
            raise PreconditionError("No graded conversations found")
        ungraded = [e.id for e in examples if not e.is_graded]
        if ungraded:
            raise PreconditionError(f"Not all conversations have been graded ({len(ungraded)} remaining)")

    async def derive(self, project: Optional[Project], examples: Sequence[GradedExample]) -> List[Criterion]:
        """Derive 4-6 criteria, or the single fallback criterion on any failure."""
        self.check_ready(examples)

        feedback = [
            {
                "conversationIndex": idx + 1,
                "persona": e.persona_name or "Unknown",
                "grade": "PASS" if e.verdict.passed else "FAIL",
                "reasoning": e.verdict.reasoning,
                "conversationSummary": summarize_conversation(e.transcript),
            }
            for idx, e in enumerate(examples)
        ]
        prompt = build_criteria_derivation_prompt(project, feedback)

        try:
            raw = await self.backend.complete(
                [{"role": "user", "content": prompt}],
                temperature=self.temperature,
            )
            records = extract_json_array(raw)
        except Exception as e:
            logger.error(f"Error deriving criteria, using fallback: {e}")
            return fallback_criteria(examples)

        criteria = []
        for record in records:
            if len(criteria) == MAX_DERIVED_CRITERIA:
                break
            name = str(record.get("name", "")).strip()
            description = str(record.get("description", "")).strip()
            if not name or not description:
                continue
            criteria.append(
                Criterion(
                    id=f"custom-{len(criteria) + 1}-{_slugify(name)}",
                    name=name,
                    description=description,
                    category="custom",
                    derived_from=str(record.get("derivedFrom", record.get("derived_from", ""))).strip(),
                )
            )

        if not criteria:
            logger.warning("Criteria derivation returned no usable criteria, using fallback")
            return fallback_criteria(examples)
        if len(criteria) < MIN_DERIVED_CRITERIA:
            logger.info(f"Derived only {len(criteria)} criteria (asked for {MIN_DERIVED_CRITERIA}-{MAX_DERIVED_CRITERIA})")
        return criteria

    async def calibrate(self, project: Optional[Project], examples: Sequence[GradedExample]) -> CalibrationOutput:
        """Derive criteria and select few-shot examples in one step."""
        criteria = await self.derive(project, examples)
        few_shot = select_few_shot_examples(examples)
        logger.info(
            f"Calibration for {project.id if project else 'unknown project'}: "
            f"{len(criteria)} criteria, {len(few_shot)} few-shot examples"
        )
        return CalibrationOutput(
            project_id=project.id if project else "",
            criteria=tuple(criteria),
            few_shot_examples=tuple(few_shot),
        )
