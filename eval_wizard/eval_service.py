"""
Eval Wizard - Service Layer

Bridges the HTTP API to the evaluation engine. Responsibilities:
  1. Project setup: projects, personas, test scenarios
  2. Evaluation: single-scenario preview, synchronous batches, background jobs,
     CSV export
  3. Calibration: generate training conversations, record human grades,
     derive criteria, approve the result

Once a project's calibration is approved, its few-shot examples condition
every judge call for that project and its derived criteria can be selected
by id alongside the built-in catalog.
"""

import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from eval_wizard.calibration import CriteriaDeriver
from eval_wizard.criteria import builtin_criteria, get_criteria
from eval_wizard.errors import NotFoundError, PreconditionError
from eval_wizard.executor import ConversationExecutor
from eval_wizard.gateway import HttpModelGateway, ModelBackend
from eval_wizard.generation import (
    CALIBRATION_CONVERSATION_COUNT,
    generate_calibration_conversations,
    generate_personas,
    generate_scenarios,
)
from eval_wizard.jobs import DEFAULT_BATCH_SIZE, EvalJobManager
from eval_wizard.judge import ConversationJudge
from eval_wizard.models import (
    CalibrationOutput,
    Criterion,
    EvalJob,
    GradedExample,
    JobStatus,
    Persona,
    Project,
    Scenario,
    ScenarioResult,
    Verdict,
    new_id,
)
from eval_wizard.orchestrator import EvaluationOrchestrator
from eval_wizard.repositories import Repositories
from eval_wizard.results import results_to_csv, summarize

logger = logging.getLogger(__name__)


def build_backend(
    provider: str,
    model: str,
    temperature: float = 0.0,
    api_key: str = "",
    base_url: Optional[str] = None,
    timeout: float = 120,
    max_tokens: int = 2000,
) -> ModelBackend:
    """Create a ModelBackend talking to a provider's HTTP API."""
    gateway = HttpModelGateway(
        provider,
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        max_tokens=max_tokens,
    )
    return ModelBackend(gateway=gateway, model=model, temperature=temperature)


class EvalWizardService:
    """
    Everything the wizard UI can ask for, over injected repositories.

    Usage:
        service = EvalWizardService(subject=..., judge=..., generator=...)
        project = service.create_project("Math tutor", "...", system_prompt)
        job = await service.start_eval_run(project.id, ["supportive"])
    """

    def __init__(
        self,
        subject: ModelBackend,
        judge: ModelBackend,
        generator: Optional[ModelBackend] = None,
        repositories: Optional[Repositories] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_context_messages: Optional[int] = None,
        max_concurrent_scenarios: int = 1,
    ):
        self.subject = subject
        self.judge_backend = judge
        self.generator = generator or subject
        self.repos = repositories or Repositories()

        self.executor = ConversationExecutor(subject, max_context_messages=max_context_messages)
        self.judge = ConversationJudge(judge)
        self.orchestrator = EvaluationOrchestrator(
            self.executor,
            self.judge,
            max_concurrent_scenarios=max_concurrent_scenarios,
        )
        self.jobs = EvalJobManager(self.orchestrator, self.repos.jobs, batch_size=batch_size)
        self.deriver = CriteriaDeriver(judge)

    # ─── Projects ────────────────────────────────────────────────────────────

    def create_project(self, name: str, description: str, system_prompt: str) -> Project:
        if not name.strip() or not system_prompt.strip():
            raise PreconditionError("Project name and system prompt are required")
        project = Project(
            id=new_id("project"),
            name=name.strip(),
            description=description,
            system_prompt=system_prompt,
        )
        self.repos.projects.save(project)
        logger.info(f"Created project {project.id} ({project.name})")
        return project

    def list_projects(self) -> List[Project]:
        return self.repos.projects.list()

    def get_project(self, project_id: str) -> Project:
        project = self.repos.projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        return project

    # ─── Criteria ────────────────────────────────────────────────────────────

    def approved_calibration(self, project_id: str) -> Optional[CalibrationOutput]:
        calibration = self.repos.calibrations.get(project_id)
        return calibration if calibration and calibration.approved else None

    def list_criteria(self, project_id: Optional[str] = None) -> List[Criterion]:
        """Built-in criteria, plus the project's approved calibration criteria."""
        criteria = list(builtin_criteria())
        if project_id:
            calibration = self.approved_calibration(project_id)
            if calibration:
                criteria.extend(calibration.criteria)
        return criteria

    def resolve_criteria(self, project_id: str, criteria_ids: Iterable[str]) -> List[Criterion]:
        calibration = self.approved_calibration(project_id)
        extra = calibration.criteria if calibration else ()
        criteria = get_criteria(criteria_ids, extra=extra)
        if not criteria:
            raise PreconditionError("No valid criteria selected")
        return criteria

    def few_shot_examples(self, project_id: str) -> List[GradedExample]:
        calibration = self.approved_calibration(project_id)
        return list(calibration.few_shot_examples) if calibration else []

    # ─── Personas & scenarios ────────────────────────────────────────────────

    async def generate_personas(self, project_id: str, audience: Dict[str, str]) -> List[Persona]:
        self.get_project(project_id)
        personas = await generate_personas(self.generator, project_id, audience)
        return self.repos.personas.replace_all(project_id, personas)

    def get_personas(self, project_id: str) -> List[Persona]:
        self.get_project(project_id)
        return self.repos.personas.list_for_project(project_id)

    def save_personas(self, project_id: str, records: Sequence[Dict[str, Any]]) -> List[Persona]:
        self.get_project(project_id)
        personas = [Persona.from_dict(r, project_id=project_id) for r in records]
        return self.repos.personas.replace_all(project_id, personas)

    def _require_personas(self, project_id: str) -> List[Persona]:
        personas = self.repos.personas.list_for_project(project_id)
        if not personas:
            raise PreconditionError("No personas found. Create personas first.")
        return personas

    async def generate_scenarios(self, project_id: str, count: int = 50) -> List[Scenario]:
        project = self.get_project(project_id)
        personas = self._require_personas(project_id)
        scenarios = await generate_scenarios(self.generator, project, personas, count=count)
        return self.repos.scenarios.replace_all(project_id, scenarios)

    def get_scenarios(self, project_id: str) -> List[Scenario]:
        self.get_project(project_id)
        return self.repos.scenarios.list_for_project(project_id)

    def save_scenarios(self, project_id: str, records: Sequence[Dict[str, Any]]) -> List[Scenario]:
        self.get_project(project_id)
        scenarios = [Scenario.from_dict(r) for r in records]
        empty = [s.id for s in scenarios if not s.turns]
        if empty:
            raise PreconditionError(f"Scenarios must have at least one turn: {', '.join(empty)}")
        return self.repos.scenarios.replace_all(project_id, scenarios)

    # ─── Evaluation ──────────────────────────────────────────────────────────

    def _scenario(self, project_id: str, scenario_id: str) -> Scenario:
        for scenario in self.repos.scenarios.list_for_project(project_id):
            if scenario.id == scenario_id:
                return scenario
        raise NotFoundError(f"Test scenario not found: {scenario_id}")

    async def preview(self, project_id: str, scenario_id: str, criteria_ids: Sequence[str]) -> ScenarioResult:
        """Run and judge one scenario synchronously."""
        project = self.get_project(project_id)
        scenario = self._scenario(project_id, scenario_id)
        criteria = self.resolve_criteria(project_id, criteria_ids)
        return await self.orchestrator.run_scenario(
            project.system_prompt, scenario, criteria, self.few_shot_examples(project_id)
        )

    async def run_batch(
        self,
        project_id: str,
        scenario_ids: Sequence[str],
        criteria_ids: Sequence[str],
    ) -> List[ScenarioResult]:
        """Run one chunk of scenarios synchronously (client-driven batching)."""
        project = self.get_project(project_id)
        scenarios = self.repos.scenarios.get_many(project_id, scenario_ids)
        if not scenarios:
            raise NotFoundError("No test scenarios found")
        criteria = self.resolve_criteria(project_id, criteria_ids)
        return await self.orchestrator.run_batch(
            project.system_prompt, scenarios, criteria, self.few_shot_examples(project_id)
        )

    async def start_eval_run(
        self,
        project_id: str,
        criteria_ids: Sequence[str],
        scenario_ids: Optional[Sequence[str]] = None,
    ) -> EvalJob:
        """Kick off a background evaluation over the project's scenarios."""
        project = self.get_project(project_id)
        if scenario_ids:
            scenarios = self.repos.scenarios.get_many(project_id, scenario_ids)
        else:
            scenarios = self.repos.scenarios.list_for_project(project_id)
        if not scenarios:
            raise PreconditionError("No test scenarios found. Generate test scenarios first.")
        criteria = self.resolve_criteria(project_id, criteria_ids)
        return self.jobs.submit(
            project.id,
            project.system_prompt,
            scenarios,
            criteria,
            self.few_shot_examples(project_id),
        )

    def get_eval_run(self, job_id: str) -> EvalJob:
        return self.jobs.get(job_id)

    def _job_criteria(self, job: EvalJob) -> List[Criterion]:
        calibration = self.repos.calibrations.get(job.project_id)
        extra = calibration.criteria if calibration else ()
        return get_criteria(job.criteria_ids, extra=extra)

    def summarize_eval_run(self, job_id: str) -> Dict[str, Any]:
        job = self.jobs.get(job_id)
        return summarize(job.results, self._job_criteria(job))

    def export_eval_run(self, job_id: str) -> str:
        """CSV export of a completed run."""
        job = self.jobs.get(job_id)
        if job.status is not JobStatus.COMPLETED:
            raise PreconditionError(f"Eval run {job_id} is {job.status.value}, not completed")
        scenarios = self.repos.scenarios.list_for_project(job.project_id)
        return results_to_csv(job.results, scenarios, self._job_criteria(job))

    # ─── Calibration ─────────────────────────────────────────────────────────

    async def generate_calibration(
        self,
        project_id: str,
        count: int = CALIBRATION_CONVERSATION_COUNT,
    ) -> List[GradedExample]:
        """Generate and execute the training conversations the user will grade."""
        project = self.get_project(project_id)
        personas = self._require_personas(project_id)
        examples = await generate_calibration_conversations(
            self.generator, self.executor, project, personas, count=count
        )
        if not examples:
            raise PreconditionError("Failed to generate any calibration conversations")
        logger.info(f"Generated {len(examples)} calibration conversations for project {project_id}")
        return self.repos.graded_examples.replace_all(project_id, examples)

    def grade(self, project_id: str, example_id: str, passed: bool, reasoning: str) -> GradedExample:
        """Record (or overwrite) the human verdict on one training conversation."""
        example = self.repos.graded_examples.get(project_id, example_id)
        if example is None:
            raise NotFoundError(f"Conversation not found: {example_id}")
        graded = dataclasses.replace(example, verdict=Verdict(passed=passed, reasoning=reasoning))
        return self.repos.graded_examples.upsert(graded)

    def get_grading(self, project_id: str) -> Dict[str, Any]:
        return {
            "conversations": self.repos.graded_examples.list_for_project(project_id),
            "progress": self.repos.graded_examples.grading_progress(project_id),
        }

    async def analyze_calibration(self, project_id: str) -> CalibrationOutput:
        """Derive criteria and few-shot examples from the graded conversations."""
        project = self.repos.projects.get(project_id)
        examples = self.repos.graded_examples.list_for_project(project_id)
        output = await self.deriver.calibrate(project, examples)
        if not output.project_id:
            output = dataclasses.replace(output, project_id=project_id)
        return self.repos.calibrations.save(output)

    def get_calibration(self, project_id: str) -> CalibrationOutput:
        calibration = self.repos.calibrations.get(project_id)
        if calibration is None:
            raise NotFoundError(f"No calibration found for project: {project_id}")
        return calibration

    def approve_calibration(
        self,
        project_id: str,
        criteria: Optional[Sequence[Criterion]] = None,
    ) -> CalibrationOutput:
        """Mark the calibration approved, optionally with user-edited criteria."""
        calibration = self.get_calibration(project_id)
        changes: Dict[str, Any] = {"approved": True}
        if criteria is not None:
            if not criteria:
                raise PreconditionError("At least one criterion is required")
            changes["criteria"] = tuple(criteria)
        approved = dataclasses.replace(calibration, **changes)
        logger.info(f"Calibration approved for project {project_id}: {len(approved.criteria)} criteria")
        return self.repos.calibrations.save(approved)
