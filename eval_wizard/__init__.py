# Eval Wizard
# Evaluate an AI assistant's system prompt against a rubric calibrated to your own judgment

from eval_wizard.calibration import CriteriaDeriver, select_few_shot_examples
from eval_wizard.errors import EvalWizardError, GatewayError, NotFoundError, ParseError, PreconditionError
from eval_wizard.eval_service import EvalWizardService, build_backend
from eval_wizard.executor import ConversationExecutor
from eval_wizard.gateway import HttpModelGateway, ModelBackend, ModelGateway
from eval_wizard.judge import ConversationJudge
from eval_wizard.models import (
    CalibrationOutput,
    CheckpointEvaluation,
    CheckpointKind,
    Criterion,
    GradedExample,
    Message,
    Scenario,
    ScenarioResult,
    Turn,
    Verdict,
)
from eval_wizard.orchestrator import EvaluationOrchestrator

__version__ = "0.1.0"

__all__ = [
    "CalibrationOutput",
    "CheckpointEvaluation",
    "CheckpointKind",
    "ConversationExecutor",
    "ConversationJudge",
    "CriteriaDeriver",
    "Criterion",
    "EvalWizardError",
    "EvalWizardService",
    "EvaluationOrchestrator",
    "GatewayError",
    "GradedExample",
    "HttpModelGateway",
    "Message",
    "ModelBackend",
    "ModelGateway",
    "NotFoundError",
    "ParseError",
    "PreconditionError",
    "Scenario",
    "ScenarioResult",
    "Turn",
    "Verdict",
    "build_backend",
    "select_few_shot_examples",
]
