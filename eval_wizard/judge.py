"""
Eval Wizard - LLM Judge

Scores a conversation (or a prefix of one) against a single criterion using
a second model as the judge.

Judge design:
- Judge at temperature 0 so verdicts are repeatable for a fixed
  transcript + criterion + model version (best effort, not guaranteed)
- Use structured output ("Reasoning: ... / Verdict: PASS|FAIL")
- Validate the judge against human labels: the few-shot examples collected
  during calibration are injected so the judge mirrors the user's standard
"""

import logging
from typing import Optional, Sequence

from eval_wizard.gateway import ModelBackend
from eval_wizard.models import CheckpointKind, Criterion, GradedExample, Message, Verdict
from eval_wizard.parsing import parse_verdict
from eval_wizard.prompts import (
    JUDGE_SYSTEM_PROMPT,
    build_conversation_judge_prompt,
    build_response_judge_prompt,
)

logger = logging.getLogger(__name__)

JUDGE_ERROR_REASONING = "Error occurred during evaluation"


class ConversationJudge:
    """
    LLM-as-judge for conversation checkpoints.

    Example:
        judge = ConversationJudge(judge_backend)
        verdict = await judge.judge(prefix, criterion, CheckpointKind.FINAL, few_shot)
    """

    def __init__(self, backend: ModelBackend, temperature: float = 0.0):
        self.backend = backend
        self.temperature = temperature

    async def judge(
        self,
        transcript_prefix: Sequence[Message],
        criterion: Criterion,
        kind: CheckpointKind = CheckpointKind.FINAL,
        few_shot_examples: Optional[Sequence[GradedExample]] = None,
    ) -> Verdict:
        """
        Ask the judge model for a verdict. A malformed reply becomes a failing
        verdict; gateway failures propagate (see judge_safely).
        """
        prompt = build_conversation_judge_prompt(transcript_prefix, criterion, kind, few_shot_examples)
        raw = await self.backend.complete(
            [{"role": "user", "content": prompt}],
            system_prompt=JUDGE_SYSTEM_PROMPT,
            temperature=self.temperature,
        )
        return parse_verdict(raw)

    async def judge_safely(
        self,
        transcript_prefix: Sequence[Message],
        criterion: Criterion,
        kind: CheckpointKind = CheckpointKind.FINAL,
        few_shot_examples: Optional[Sequence[GradedExample]] = None,
    ) -> Verdict:
        """judge(), with any failure converted into a failing sentinel verdict."""
        try:
            return await self.judge(transcript_prefix, criterion, kind, few_shot_examples)
        except Exception as e:
            logger.error(f"Error judging {criterion.id}: {e}")
            return Verdict(passed=False, reasoning=JUDGE_ERROR_REASONING)

    async def judge_single_response(self, user_query: str, ai_response: str, criterion: Criterion) -> Verdict:
        """Judge one reply to one query, without conversation framing."""
        prompt = build_response_judge_prompt(user_query, ai_response, criterion)
        raw = await self.backend.complete(
            [{"role": "user", "content": prompt}],
            system_prompt=JUDGE_SYSTEM_PROMPT,
            temperature=self.temperature,
        )
        return parse_verdict(raw)
