"""
Eval Wizard - Repositories

One repository interface per entity type, injected into the service layer
rather than imported as shared module state. The in-memory implementations
keep everything in process memory; a database-backed implementation only has
to satisfy the same interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from eval_wizard.models import CalibrationOutput, EvalJob, GradedExample, Persona, Project, Scenario


# ─── Interfaces ───────────────────────────────────────────────────────────────


class ProjectRepository(ABC):
    @abstractmethod
    def get(self, project_id: str) -> Optional[Project]: ...

    @abstractmethod
    def save(self, project: Project) -> Project: ...

    @abstractmethod
    def list(self) -> List[Project]: ...


class PersonaRepository(ABC):
    @abstractmethod
    def list_for_project(self, project_id: str) -> List[Persona]: ...

    @abstractmethod
    def replace_all(self, project_id: str, personas: Iterable[Persona]) -> List[Persona]: ...


class ScenarioRepository(ABC):
    @abstractmethod
    def list_for_project(self, project_id: str) -> List[Scenario]: ...

    @abstractmethod
    def replace_all(self, project_id: str, scenarios: Iterable[Scenario]) -> List[Scenario]: ...

    def get_many(self, project_id: str, scenario_ids: Iterable[str]) -> List[Scenario]:
        """Scenarios with the given ids, in project order."""
        wanted = set(scenario_ids)
        return [s for s in self.list_for_project(project_id) if s.id in wanted]


class GradedExampleRepository(ABC):
    @abstractmethod
    def list_for_project(self, project_id: str) -> List[GradedExample]: ...

    @abstractmethod
    def replace_all(self, project_id: str, examples: Iterable[GradedExample]) -> List[GradedExample]: ...

    @abstractmethod
    def upsert(self, example: GradedExample) -> GradedExample: ...

    def get(self, project_id: str, example_id: str) -> Optional[GradedExample]:
        for example in self.list_for_project(project_id):
            if example.id == example_id:
                return example
        return None

    def grading_progress(self, project_id: str) -> Dict[str, int]:
        examples = self.list_for_project(project_id)
        return {
            "completed": sum(1 for e in examples if e.is_graded),
            "total": len(examples),
        }


class CalibrationRepository(ABC):
    @abstractmethod
    def get(self, project_id: str) -> Optional[CalibrationOutput]: ...

    @abstractmethod
    def save(self, output: CalibrationOutput) -> CalibrationOutput: ...


class EvalJobRepository(ABC):
    @abstractmethod
    def get(self, job_id: str) -> Optional[EvalJob]: ...

    @abstractmethod
    def save(self, job: EvalJob) -> EvalJob: ...


# ─── In-memory implementations ────────────────────────────────────────────────


class InMemoryProjectRepository(ProjectRepository):
    def __init__(self):
        self._projects: Dict[str, Project] = {}

    def get(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def save(self, project: Project) -> Project:
        self._projects[project.id] = project
        return project

    def list(self) -> List[Project]:
        return list(self._projects.values())


class InMemoryPersonaRepository(PersonaRepository):
    def __init__(self):
        self._personas: Dict[str, List[Persona]] = {}

    def list_for_project(self, project_id: str) -> List[Persona]:
        return list(self._personas.get(project_id, []))

    def replace_all(self, project_id: str, personas: Iterable[Persona]) -> List[Persona]:
        self._personas[project_id] = list(personas)
        return self.list_for_project(project_id)


class InMemoryScenarioRepository(ScenarioRepository):
    def __init__(self):
        self._scenarios: Dict[str, List[Scenario]] = {}

    def list_for_project(self, project_id: str) -> List[Scenario]:
        return list(self._scenarios.get(project_id, []))

    def replace_all(self, project_id: str, scenarios: Iterable[Scenario]) -> List[Scenario]:
        self._scenarios[project_id] = list(scenarios)
        return self.list_for_project(project_id)


class InMemoryGradedExampleRepository(GradedExampleRepository):
    def __init__(self):
        self._examples: Dict[str, List[GradedExample]] = {}

    def list_for_project(self, project_id: str) -> List[GradedExample]:
        return list(self._examples.get(project_id, []))

    def replace_all(self, project_id: str, examples: Iterable[GradedExample]) -> List[GradedExample]:
        self._examples[project_id] = list(examples)
        return self.list_for_project(project_id)

    def upsert(self, example: GradedExample) -> GradedExample:
        examples = self._examples.setdefault(example.project_id, [])
        for i, existing in enumerate(examples):
            if existing.id == example.id:
                examples[i] = example
                return example
        examples.append(example)
        return example


class InMemoryCalibrationRepository(CalibrationRepository):
    def __init__(self):
        self._outputs: Dict[str, CalibrationOutput] = {}

    def get(self, project_id: str) -> Optional[CalibrationOutput]:
        return self._outputs.get(project_id)

    def save(self, output: CalibrationOutput) -> CalibrationOutput:
        self._outputs[output.project_id] = output
        return output


class InMemoryEvalJobRepository(EvalJobRepository):
    def __init__(self):
        self._jobs: Dict[str, EvalJob] = {}

    def get(self, job_id: str) -> Optional[EvalJob]:
        return self._jobs.get(job_id)

    def save(self, job: EvalJob) -> EvalJob:
        self._jobs[job.id] = job
        return job


@dataclass
class Repositories:
    """All repositories the service layer needs, injected as one bundle."""
    projects: ProjectRepository = field(default_factory=InMemoryProjectRepository)
    personas: PersonaRepository = field(default_factory=InMemoryPersonaRepository)
    scenarios: ScenarioRepository = field(default_factory=InMemoryScenarioRepository)
    graded_examples: GradedExampleRepository = field(default_factory=InMemoryGradedExampleRepository)
    calibrations: CalibrationRepository = field(default_factory=InMemoryCalibrationRepository)
    jobs: EvalJobRepository = field(default_factory=InMemoryEvalJobRepository)
