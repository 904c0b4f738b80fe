"""
Pydantic schemas for the Eval Wizard API.

Request bodies for each wizard step, plus the shapes of the objects the
frontend edits and sends back (personas, scenarios, criteria).
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional


# --- Projects ---

class CreateProjectRequest(BaseModel):
    """Request body for POST /api/projects."""
    name: str = Field(description="Project name shown in the wizard")
    description: str = Field(default="", description="What the AI product does and who it is for")
    system_prompt: str = Field(description="System prompt of the AI product under test")


# --- Personas ---

class AudienceRequest(BaseModel):
    """Request body for POST /api/projects/{id}/personas/generate."""
    age_range: str = Field(default="", description="e.g. '10-12' or 'adult learners'")
    role: str = Field(default="", description="e.g. 'middle school student'")
    experience_level: str = Field(default="", description="e.g. 'beginner'")
    goals: str = Field(default="", description="What the audience wants to achieve")
    challenges: str = Field(default="", description="What the audience struggles with")
    additional_context: str = Field(default="", description="Anything else the generator should know")


class PersonaBody(BaseModel):
    id: Optional[str] = None
    name: str
    demographics: Dict[str, str] = Field(default_factory=dict)
    goals: List[str] = Field(default_factory=list)
    challenges: List[str] = Field(default_factory=list)
    context: str = ""


class SavePersonasRequest(BaseModel):
    """Request body for PUT /api/projects/{id}/personas (replaces the list)."""
    personas: List[PersonaBody]


# --- Scenarios ---

class TurnBody(BaseModel):
    content: str = Field(description="The user's message for this turn")
    checkpoint: bool = Field(default=False, description="Evaluate the conversation after the reply to this turn")


class ScenarioBody(BaseModel):
    id: Optional[str] = None
    name: str = ""
    description: str = ""
    turns: List[TurnBody] = Field(default_factory=list)
    input: Optional[str] = Field(default=None, description="Single-turn shorthand, used when turns is empty")
    expected_behavior: str = ""
    persona_name: str = ""


class GenerateScenariosRequest(BaseModel):
    """Request body for POST /api/projects/{id}/scenarios/generate."""
    count: int = Field(default=50, ge=1, le=100, description="Number of test scenarios to draft")


class SaveScenariosRequest(BaseModel):
    """Request body for PUT /api/projects/{id}/scenarios (replaces the list)."""
    scenarios: List[ScenarioBody]


# --- Eval runs ---

class PreviewRequest(BaseModel):
    """Request body for POST /api/eval-runs/preview."""
    project_id: str
    scenario_id: str
    criteria_ids: List[str]


class BatchRequest(BaseModel):
    """Request body for POST /api/eval-runs/batch (one client-driven chunk)."""
    project_id: str
    scenario_ids: List[str]
    criteria_ids: List[str]


class StartEvalRunRequest(BaseModel):
    """Request body for POST /api/eval-runs."""
    project_id: str
    criteria_ids: List[str]
    scenario_ids: Optional[List[str]] = Field(
        default=None,
        description="Subset of scenarios to run; defaults to all of the project's scenarios"
    )


# --- Calibration ---

class GenerateCalibrationRequest(BaseModel):
    """Request body for POST /api/calibration/generate."""
    project_id: str
    count: int = Field(default=10, ge=1, le=30, description="Number of training conversations")


class GradeRequest(BaseModel):
    """Request body for POST /api/calibration/grade."""
    project_id: str
    conversation_id: str
    passed: bool = Field(alias="pass", description="The user's PASS/FAIL verdict")
    reasoning: str = Field(default="", description="Why the user graded it that way")

    model_config = ConfigDict(populate_by_name=True)


class AnalyzeRequest(BaseModel):
    """Request body for POST /api/calibration/analyze."""
    project_id: str


class CriterionBody(BaseModel):
    id: str
    name: str
    description: str
    category: str = "custom"
    derived_from: str = ""


class ApproveRequest(BaseModel):
    """Request body for POST /api/calibration/approve."""
    project_id: str
    criteria: Optional[List[CriterionBody]] = Field(
        default=None,
        description="User-edited criteria; omit to approve the derived criteria as-is"
    )
