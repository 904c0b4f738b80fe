"""
Eval Wizard - Evaluation Jobs

Full evaluation runs can take minutes, so the HTTP layer kicks them off as
background asyncio tasks and polls for status:

    pending -> running -> completed
                       -> failed

Scenarios are evaluated in chunks of ``batch_size``; progress is updated
after each chunk so pollers can render "N/M scenarios".
"""

import asyncio
import logging
from typing import Dict, Optional, Sequence

from eval_wizard.errors import NotFoundError, PreconditionError
from eval_wizard.models import Criterion, EvalJob, GradedExample, JobStatus, Scenario
from eval_wizard.orchestrator import EvaluationOrchestrator, iter_chunks
from eval_wizard.repositories import EvalJobRepository, InMemoryEvalJobRepository

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 3


class EvalJobManager:
    """
    Starts and tracks background evaluation jobs.

    Usage:
        manager = EvalJobManager(orchestrator)
        job = manager.submit(project_id, system_prompt, scenarios, criteria)
        await manager.wait(job.id)
    """

    def __init__(
        self,
        orchestrator: EvaluationOrchestrator,
        repository: Optional[EvalJobRepository] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.orchestrator = orchestrator
        self.repository = repository or InMemoryEvalJobRepository()
        self.batch_size = batch_size
        self._tasks: Dict[str, asyncio.Task] = {}

    def submit(
        self,
        project_id: str,
        system_prompt: str,
        scenarios: Sequence[Scenario],
        criteria: Sequence[Criterion],
        few_shot_examples: Optional[Sequence[GradedExample]] = None,
    ) -> EvalJob:
        """
        Create a pending job and schedule it on the running event loop.

        Raises:
            PreconditionError: if no scenarios or no criteria are given
        """
        if not scenarios:
            raise PreconditionError("No test scenarios found")
        if not criteria:
            raise PreconditionError("No criteria selected")

        job = EvalJob(
            project_id=project_id,
            criteria_ids=[c.id for c in criteria],
            total_scenarios=len(scenarios),
        )
        self.repository.save(job)
        self._tasks[job.id] = asyncio.create_task(
            self._run(job, system_prompt, list(scenarios), list(criteria), list(few_shot_examples or []))
        )
        logger.info(f"Submitted eval job {job.id}: {len(scenarios)} scenarios x {len(criteria)} criteria")
        return job

    def get(self, job_id: str) -> EvalJob:
        job = self.repository.get(job_id)
        if job is None:
            raise NotFoundError(f"Eval run not found: {job_id}")
        return job

    async def wait(self, job_id: str) -> EvalJob:
        """Block until the job reaches a terminal state and return it."""
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        return self.get(job_id)

    async def _run(self, job, system_prompt, scenarios, criteria, few_shot) -> None:
        job.transition(JobStatus.RUNNING)
        self.repository.save(job)
        try:
            for chunk in iter_chunks(scenarios, self.batch_size):
                results = await self.orchestrator.run_batch(system_prompt, chunk, criteria, few_shot)
                job.results.extend(results)
                job.completed_scenarios += len(chunk)
                self.repository.save(job)
                logger.info(f"Eval job {job.id}: {job.completed_scenarios}/{job.total_scenarios} scenarios")
        except Exception as e:
            logger.error(f"Eval job {job.id} failed: {e}", exc_info=True)
            job.error = str(e)
            job.transition(JobStatus.FAILED)
        else:
            job.transition(JobStatus.COMPLETED)
        finally:
            self.repository.save(job)
            self._tasks.pop(job.id, None)
