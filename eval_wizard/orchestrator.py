"""
Eval Wizard - Evaluation Orchestrator

Runs a batch of scenarios against a system prompt and scores them:

  for each scenario (sequentially):
      execute the conversation
      for each checkpoint (in turn order):
          judge every criterion concurrently, then join
      assemble the ScenarioResult

Failures are isolated at the smallest unit: one criterion's judge call
failing yields one failing verdict; one scenario's conversation failing
yields one degenerate result. The batch always returns a result for every
requested scenario/criterion pair.

The orchestrator holds no per-run state, so callers may split the scenario
list into chunks (see iter_chunks) and call run_batch repeatedly without
changing the results.
"""

import asyncio
import logging
from typing import Iterator, List, Optional, Sequence, TypeVar

from eval_wizard.checkpoints import checkpoint_indices, checkpoint_kind, transcript_prefix
from eval_wizard.errors import PreconditionError
from eval_wizard.executor import ConversationExecutor
from eval_wizard.judge import ConversationJudge
from eval_wizard.models import (
    CheckpointEvaluation,
    CheckpointKind,
    Criterion,
    GradedExample,
    Scenario,
    ScenarioResult,
    Verdict,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def iter_chunks(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive fixed-size chunks of ``items``."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class EvaluationOrchestrator:
    """
    Fans scenarios x checkpoints x criteria out to the executor and judge.

    Usage:
        orchestrator = EvaluationOrchestrator(executor, judge)
        results = await orchestrator.run_batch(system_prompt, scenarios, criteria)
    """

    def __init__(
        self,
        executor: ConversationExecutor,
        judge: ConversationJudge,
        max_concurrent_scenarios: int = 1,
    ):
        if max_concurrent_scenarios < 1:
            raise ValueError("max_concurrent_scenarios must be at least 1")
        self.executor = executor
        self.judge = judge
        self.max_concurrent_scenarios = max_concurrent_scenarios

    async def run_batch(
        self,
        system_prompt: str,
        scenarios: Sequence[Scenario],
        criteria: Sequence[Criterion],
        few_shot_examples: Optional[Sequence[GradedExample]] = None,
    ) -> List[ScenarioResult]:
        """
        Evaluate every scenario against every criterion.

        Returns one ScenarioResult per scenario, in input order.

        Raises:
            PreconditionError: if no scenarios or no criteria are given
        """
        if not scenarios:
            raise PreconditionError("At least one scenario is required")
        if not criteria:
            raise PreconditionError("At least one criterion is required")

        criteria = tuple(criteria)
        few_shot = tuple(few_shot_examples or ())

        logger.info(
            f"Running batch: {len(scenarios)} scenarios x {len(criteria)} criteria"
            f" ({len(few_shot)} few-shot examples)"
        )

        if self.max_concurrent_scenarios == 1:
            results = []
            for scenario in scenarios:
                results.append(await self.run_scenario(system_prompt, scenario, criteria, few_shot))
            return results

        semaphore = asyncio.Semaphore(self.max_concurrent_scenarios)

        async def _bounded(scenario: Scenario) -> ScenarioResult:
            async with semaphore:
                return await self.run_scenario(system_prompt, scenario, criteria, few_shot)

        # gather preserves input order, so attribution is unchanged
        return list(await asyncio.gather(*(_bounded(s) for s in scenarios)))

    async def run_scenario(
        self,
        system_prompt: str,
        scenario: Scenario,
        criteria: Sequence[Criterion],
        few_shot_examples: Optional[Sequence[GradedExample]] = None,
    ) -> ScenarioResult:
        """Execute and score one scenario. Never raises for model failures."""
        turns = scenario.turns
        if not turns:
            logger.error(f"Scenario {scenario.id} has no turns")
            return self._failed_result(scenario, criteria, "Scenario has no turns")

        try:
            transcript = await self.executor.execute(system_prompt, turns)
        except Exception as e:
            logger.error(f"Error processing scenario {scenario.id}: {e}")
            return self._failed_result(scenario, criteria, str(e))

        result = ScenarioResult(scenario_id=scenario.id, transcript=transcript)

        for index in checkpoint_indices(turns):
            kind = checkpoint_kind(index, turns)
            prefix = transcript_prefix(transcript, index)

            verdicts = await asyncio.gather(
                *(self.judge.judge_safely(prefix, c, kind, few_shot_examples) for c in criteria)
            )
            evaluations = [
                CheckpointEvaluation(criterion_id=c.id, after_turn_index=index, kind=kind, verdict=v)
                for c, v in zip(criteria, verdicts)
            ]

            if kind is CheckpointKind.FINAL:
                result.final_evaluations = evaluations
            else:
                result.checkpoint_evaluations.extend(evaluations)

        passed = sum(1 for e in result.final_evaluations if e.passed)
        logger.info(f"Scenario {scenario.id} completed: {passed}/{len(criteria)} criteria passed")
        return result

    @staticmethod
    def _failed_result(scenario: Scenario, criteria: Sequence[Criterion], error: str) -> ScenarioResult:
        """One failing final verdict per criterion for a scenario that could not run."""
        reasoning = f"Error testing AI: {error}"
        return ScenarioResult(
            scenario_id=scenario.id,
            final_evaluations=[
                CheckpointEvaluation(
                    criterion_id=c.id,
                    after_turn_index=max(len(scenario.turns) - 1, 0),
                    kind=CheckpointKind.FINAL,
                    verdict=Verdict(passed=False, reasoning=reasoning),
                )
                for c in criteria
            ],
            error=error,
        )
