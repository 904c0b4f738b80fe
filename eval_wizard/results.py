"""
Eval Wizard - Results

Aggregates a run's ScenarioResults for display and export:
  - summarize(): pass rates overall, per criterion and per scenario, plus
    how many scenarios completed vs. failed to execute
  - results_to_csv(): one row per verdict, final and intermediate
"""

import csv
import io
from typing import Any, Dict, List, Optional, Sequence

from eval_wizard.models import ASSISTANT, CheckpointEvaluation, CheckpointKind, Criterion, Scenario, ScenarioResult

CSV_COLUMNS = ["Scenario", "Criterion", "Checkpoint", "Turn", "Pass/Fail", "Reasoning", "AI Response"]


def _rate(passed: int, total: int) -> float:
    return passed / total if total else 0.0


def summarize(results: Sequence[ScenarioResult], criteria: Sequence[Criterion]) -> Dict[str, Any]:
    """Pass-rate summary over final verdicts."""
    per_criterion: Dict[str, Dict[str, Any]] = {
        c.id: {"name": c.name, "passed": 0, "total": 0} for c in criteria
    }
    per_scenario: List[Dict[str, Any]] = []
    passed_pairs = 0
    total_pairs = 0

    for result in results:
        scenario_passed = 0
        for evaluation in result.final_evaluations:
            stats = per_criterion.setdefault(
                evaluation.criterion_id, {"name": evaluation.criterion_id, "passed": 0, "total": 0}
            )
            stats["total"] += 1
            total_pairs += 1
            if evaluation.passed:
                stats["passed"] += 1
                passed_pairs += 1
                scenario_passed += 1
        per_scenario.append({
            "scenario_id": result.scenario_id,
            "passed": scenario_passed,
            "total": len(result.final_evaluations),
            "error": result.error,
        })

    for stats in per_criterion.values():
        stats["pass_rate"] = _rate(stats["passed"], stats["total"])

    failed_scenarios = sum(1 for r in results if r.failed)
    return {
        "pass_rate": _rate(passed_pairs, total_pairs),
        "passed": passed_pairs,
        "failed": total_pairs - passed_pairs,
        "total": total_pairs,
        "completed_scenarios": len(results) - failed_scenarios,
        "failed_scenarios": failed_scenarios,
        "total_scenarios": len(results),
        "per_criterion": per_criterion,
        "per_scenario": per_scenario,
    }


def _ai_response(result: ScenarioResult, turn_index: int) -> str:
    position = 2 * turn_index + 1
    if position < len(result.transcript) and result.transcript[position].role == ASSISTANT:
        return result.transcript[position].content
    return ""


def _row(
    result: ScenarioResult,
    evaluation: CheckpointEvaluation,
    scenario: Optional[Scenario],
    criterion: Optional[Criterion],
) -> List[str]:
    return [
        (scenario.name if scenario and scenario.name else result.scenario_id),
        (criterion.name if criterion else evaluation.criterion_id),
        "Final" if evaluation.kind is CheckpointKind.FINAL else "Intermediate",
        str(evaluation.after_turn_index + 1),
        "PASS" if evaluation.passed else "FAIL",
        evaluation.reasoning,
        _ai_response(result, evaluation.after_turn_index),
    ]


def results_to_csv(
    results: Sequence[ScenarioResult],
    scenarios: Sequence[Scenario],
    criteria: Sequence[Criterion],
) -> str:
    """Render results as CSV text, intermediate checkpoints before the final verdicts."""
    scenarios_by_id = {s.id: s for s in scenarios}
    criteria_by_id = {c.id: c for c in criteria}

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for result in results:
        scenario = scenarios_by_id.get(result.scenario_id)
        for evaluation in [*result.checkpoint_evaluations, *result.final_evaluations]:
            writer.writerow(_row(result, evaluation, scenario, criteria_by_id.get(evaluation.criterion_id)))
    return buffer.getvalue()
