"""
Eval Wizard - Core Data Model

Configuration types (Turn, Scenario, Criterion) are created before a run and
are read-only during it. Run artifacts (transcripts, verdicts, checkpoint
evaluations, scenario results) are produced fresh per run and never shared
across runs. Graded examples and calibration outputs are the only artifacts
carried forward, as immutable snapshots.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

USER = "user"
ASSISTANT = "assistant"


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Turn:
    """One user utterance in a scenario."""
    content: str
    checkpoint: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        # Generated scenarios use the "evaluateAfter" key for the checkpoint flag
        checkpoint = data.get("checkpoint", data.get("evaluateAfter", data.get("evaluate_after", False)))
        return cls(content=str(data.get("content", "")), checkpoint=bool(checkpoint))

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "checkpoint": self.checkpoint}


@dataclass(frozen=True)
class Message:
    """A single transcript entry. Once appended it is never modified."""
    role: str
    content: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(role=data.get("role", USER), content=str(data.get("content", "")))

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


# Alternating user/assistant messages, starting with user
Transcript = List[Message]


@dataclass(frozen=True)
class Criterion:
    """A named rubric item the judge scores against."""
    id: str
    name: str
    description: str
    category: str = "general"
    derived_from: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Criterion":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            category=data.get("category", "general"),
            derived_from=data.get("derived_from", data.get("derivedFrom", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "derived_from": self.derived_from,
        }


@dataclass(frozen=True)
class Verdict:
    """Pass/fail judgment of one transcript prefix against one criterion."""
    passed: bool
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        return {"pass": self.passed, "reasoning": self.reasoning}


class CheckpointKind(str, Enum):
    INTERMEDIATE = "intermediate"  # conversation may still continue
    FINAL = "final"  # complete conversation, judged holistically


@dataclass(frozen=True)
class CheckpointEvaluation:
    """A verdict tagged with the criterion and the turn it was produced after."""
    criterion_id: str
    after_turn_index: int
    kind: CheckpointKind
    verdict: Verdict

    @property
    def passed(self) -> bool:
        return self.verdict.passed

    @property
    def reasoning(self) -> str:
        return self.verdict.reasoning

    def to_dict(self) -> Dict[str, Any]:
        return {
            "criterion_id": self.criterion_id,
            "after_turn_index": self.after_turn_index,
            "kind": self.kind.value,
            "pass": self.verdict.passed,
            "reasoning": self.verdict.reasoning,
        }


@dataclass(frozen=True)
class Scenario:
    """A fixed, ordered list of user turns to run against the subject model."""
    id: str
    turns: Tuple[Turn, ...]
    name: str = ""
    description: str = ""
    expected_behavior: str = ""
    persona_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        raw_turns = data.get("turns") or []
        turns = tuple(Turn.from_dict(t) if isinstance(t, dict) else Turn(content=str(t)) for t in raw_turns)
        if not turns and data.get("input"):
            # Single-input test case: one turn, evaluated after the reply
            turns = (Turn(content=str(data["input"]), checkpoint=True),)
        return cls(
            id=data.get("id") or new_id("scenario"),
            turns=turns,
            name=data.get("name", ""),
            description=data.get("description", ""),
            expected_behavior=data.get("expected_behavior", data.get("expectedBehavior", "")) or "",
            persona_name=data.get("persona_name", data.get("personaName", "")) or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "turns": [t.to_dict() for t in self.turns],
            "expected_behavior": self.expected_behavior,
            "persona_name": self.persona_name,
        }


@dataclass
class ScenarioResult:
    """Outcome of one scenario within one orchestration run."""
    scenario_id: str
    transcript: Transcript = field(default_factory=list)
    checkpoint_evaluations: List[CheckpointEvaluation] = field(default_factory=list)
    final_evaluations: List[CheckpointEvaluation] = field(default_factory=list)
    error: str = ""

    @property
    def failed(self) -> bool:
        """True when the conversation itself could not be executed."""
        return bool(self.error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario_id": self.scenario_id,
            "transcript": [m.to_dict() for m in self.transcript],
            "checkpoint_evaluations": [e.to_dict() for e in self.checkpoint_evaluations],
            "final_evaluations": [e.to_dict() for e in self.final_evaluations],
            "error": self.error,
        }


@dataclass(frozen=True)
class GradedExample:
    """A conversation plus the human verdict on it."""
    id: str
    project_id: str
    transcript: Tuple[Message, ...]
    verdict: Verdict = Verdict(passed=False, reasoning="")
    persona_name: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_graded(self) -> bool:
        return bool(self.verdict.reasoning.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "persona_name": self.persona_name,
            "transcript": [m.to_dict() for m in self.transcript],
            "pass": self.verdict.passed,
            "reasoning": self.verdict.reasoning,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class CalibrationOutput:
    """Derived criteria plus the few-shot subset used to condition the judge."""
    project_id: str
    criteria: Tuple[Criterion, ...]
    few_shot_examples: Tuple[GradedExample, ...]
    approved: bool = False
    id: str = field(default_factory=lambda: new_id("calibration"))
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "criteria": [c.to_dict() for c in self.criteria],
            "few_shot_examples": [e.to_dict() for e in self.few_shot_examples],
            "approved": self.approved,
            "created_at": self.created_at.isoformat(),
        }


# ─── Project-level configuration ─────────────────────────────────────────────


@dataclass
class Project:
    id: str
    name: str
    description: str
    system_prompt: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "system_prompt": self.system_prompt,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Persona:
    """A synthetic user the generated scenarios are written for."""
    id: str
    project_id: str
    name: str
    demographics: Dict[str, str] = field(default_factory=dict)
    goals: List[str] = field(default_factory=list)
    challenges: List[str] = field(default_factory=list)
    context: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_id: str = "") -> "Persona":
        return cls(
            id=data.get("id") or new_id("persona"),
            project_id=data.get("project_id", project_id),
            name=data.get("name", "Persona"),
            demographics=dict(data.get("demographics") or {}),
            goals=list(data.get("goals") or []),
            challenges=list(data.get("challenges") or []),
            context=data.get("context", "") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "demographics": self.demographics,
            "goals": self.goals,
            "challenges": self.challenges,
            "context": self.context,
        }


# ─── Eval jobs ───────────────────────────────────────────────────────────────


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass
class EvalJob:
    """An asynchronous evaluation run and its status."""
    project_id: str
    criteria_ids: List[str]
    total_scenarios: int = 0
    id: str = field(default_factory=lambda: new_id("eval"))
    status: JobStatus = JobStatus.PENDING
    results: List[ScenarioResult] = field(default_factory=list)
    completed_scenarios: int = 0
    error: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def transition(self, status: JobStatus) -> None:
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"Illegal job transition {self.status.value} -> {status.value}")
        self.status = status
        if status in (JobStatus.COMPLETED, JobStatus.FAILED):
            self.completed_at = datetime.now()

    def to_dict(self, include_results: bool = True) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "status": self.status.value,
            "criteria_ids": list(self.criteria_ids),
            "completed_scenarios": self.completed_scenarios,
            "total_scenarios": self.total_scenarios,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_results:
            d["results"] = [r.to_dict() for r in self.results]
        return d
