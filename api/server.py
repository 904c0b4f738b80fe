"""
FastAPI server for the Eval Wizard.

Provides endpoints for:
  - Project setup (projects, personas, test scenarios)
  - Criteria catalog (built-in plus approved calibration criteria)
  - Eval runs: single-scenario preview, synchronous batches, background jobs,
    CSV export
  - Calibration: training conversations, human grading, criteria derivation,
    approval
"""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from eval_wizard import __version__
from eval_wizard.errors import NotFoundError, PreconditionError
from eval_wizard.eval_service import EvalWizardService, build_backend
from eval_wizard.models import Criterion

from . import config
from .schema import (
    AnalyzeRequest,
    ApproveRequest,
    AudienceRequest,
    BatchRequest,
    CreateProjectRequest,
    GenerateCalibrationRequest,
    GenerateScenariosRequest,
    GradeRequest,
    PreviewRequest,
    SavePersonasRequest,
    SaveScenariosRequest,
    StartEvalRunRequest,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Eval Wizard API",
    description="Backend for the eval wizard: runs multi-turn conversations against a system prompt and judges them",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Service wiring ──────────────────────────────────────────────────────────

def _backend(provider: str, model: str, temperature: float):
    api_key, base_url = config.PROVIDER_CREDENTIALS.get(provider, ("", None))
    return build_backend(
        provider,
        model,
        temperature=temperature,
        api_key=api_key,
        base_url=base_url,
        timeout=config.REQUEST_TIMEOUT,
        max_tokens=config.MAX_TOKENS,
    )


def create_service() -> EvalWizardService:
    """Build the service from environment configuration."""
    return EvalWizardService(
        subject=_backend(config.SUBJECT_PROVIDER, config.SUBJECT_MODEL, config.SUBJECT_TEMPERATURE),
        judge=_backend(config.JUDGE_PROVIDER, config.JUDGE_MODEL, config.JUDGE_TEMPERATURE),
        generator=_backend(config.GENERATOR_PROVIDER, config.GENERATOR_MODEL, config.GENERATOR_TEMPERATURE),
        batch_size=config.BATCH_SIZE,
        max_context_messages=config.MAX_CONTEXT_MESSAGES,
        max_concurrent_scenarios=config.MAX_CONCURRENT_SCENARIOS,
    )


_service: Optional[EvalWizardService] = None


def get_service() -> EvalWizardService:
    global _service
    if _service is None:
        _service = create_service()
    return _service


@app.exception_handler(PreconditionError)
async def precondition_error_handler(request: Request, exc: PreconditionError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# ─── Health Check ─────────────────────────────────────────────────────────────

@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "subject": f"{config.SUBJECT_PROVIDER}/{config.SUBJECT_MODEL}",
        "judge": f"{config.JUDGE_PROVIDER}/{config.JUDGE_MODEL}",
        "generator": f"{config.GENERATOR_PROVIDER}/{config.GENERATOR_MODEL}",
    }


# ─── Project Endpoints ───────────────────────────────────────────────────────

@app.post("/api/projects")
async def create_project(request: CreateProjectRequest, service: EvalWizardService = Depends(get_service)):
    """Create a new project around the system prompt under test."""
    project = service.create_project(request.name, request.description, request.system_prompt)
    return {"status": "ok", "project": project.to_dict()}


@app.get("/api/projects")
async def list_projects(service: EvalWizardService = Depends(get_service)):
    projects = service.list_projects()
    return {"projects": [p.to_dict() for p in projects], "count": len(projects)}


@app.get("/api/projects/{project_id}")
async def get_project(project_id: str, service: EvalWizardService = Depends(get_service)):
    return {"project": service.get_project(project_id).to_dict()}


@app.get("/api/criteria")
async def list_criteria(project_id: Optional[str] = None, service: EvalWizardService = Depends(get_service)):
    """Built-in criteria, plus the project's approved calibration criteria when project_id is given."""
    return {"criteria": [c.to_dict() for c in service.list_criteria(project_id)]}


# ─── Persona Endpoints ───────────────────────────────────────────────────────

@app.post("/api/projects/{project_id}/personas/generate")
async def generate_personas(
    project_id: str,
    request: AudienceRequest,
    service: EvalWizardService = Depends(get_service),
):
    """Draft personas from a description of the audience. Replaces existing personas."""
    try:
        personas = await service.generate_personas(project_id, request.model_dump())
        return {"personas": [p.to_dict() for p in personas]}
    except (PreconditionError, NotFoundError):
        raise
    except Exception as e:
        logger.error(f"Generate personas error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Persona generation failed: {str(e)}")


@app.get("/api/projects/{project_id}/personas")
async def get_personas(project_id: str, service: EvalWizardService = Depends(get_service)):
    return {"personas": [p.to_dict() for p in service.get_personas(project_id)]}


@app.put("/api/projects/{project_id}/personas")
async def save_personas(
    project_id: str,
    request: SavePersonasRequest,
    service: EvalWizardService = Depends(get_service),
):
    """Replace the project's personas with the edited list."""
    personas = service.save_personas(project_id, [p.model_dump() for p in request.personas])
    return {"status": "ok", "personas": [p.to_dict() for p in personas]}


# ─── Scenario Endpoints ──────────────────────────────────────────────────────

@app.post("/api/projects/{project_id}/scenarios/generate")
async def generate_scenarios(
    project_id: str,
    request: GenerateScenariosRequest = None,
    service: EvalWizardService = Depends(get_service),
):
    """Draft multi-turn test scenarios for the project's personas. Replaces existing scenarios."""
    count = request.count if request else 50
    try:
        scenarios = await service.generate_scenarios(project_id, count=count)
        return {"scenarios": [s.to_dict() for s in scenarios]}
    except (PreconditionError, NotFoundError):
        raise
    except Exception as e:
        logger.error(f"Generate scenarios error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Scenario generation failed: {str(e)}")


@app.get("/api/projects/{project_id}/scenarios")
async def get_scenarios(project_id: str, service: EvalWizardService = Depends(get_service)):
    return {"scenarios": [s.to_dict() for s in service.get_scenarios(project_id)]}


@app.put("/api/projects/{project_id}/scenarios")
async def save_scenarios(
    project_id: str,
    request: SaveScenariosRequest,
    service: EvalWizardService = Depends(get_service),
):
    """Replace the project's scenarios with the edited list."""
    scenarios = service.save_scenarios(project_id, [s.model_dump() for s in request.scenarios])
    return {"status": "ok", "scenarios": [s.to_dict() for s in scenarios]}


# ─── Eval Run Endpoints ──────────────────────────────────────────────────────

@app.post("/api/eval-runs/preview")
async def preview(request: PreviewRequest, service: EvalWizardService = Depends(get_service)):
    """Run and judge a single scenario synchronously."""
    try:
        result = await service.preview(request.project_id, request.scenario_id, request.criteria_ids)
        return {"result": result.to_dict()}
    except (PreconditionError, NotFoundError):
        raise
    except Exception as e:
        logger.error(f"Preview error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Preview evaluation failed: {str(e)}")


@app.post("/api/eval-runs/batch")
async def run_batch(request: BatchRequest, service: EvalWizardService = Depends(get_service)):
    """
    Evaluate one chunk of scenarios synchronously. The frontend splits the
    full scenario list into chunks and calls this repeatedly.
    """
    try:
        results = await service.run_batch(request.project_id, request.scenario_ids, request.criteria_ids)
        return {"results": [r.to_dict() for r in results]}
    except (PreconditionError, NotFoundError):
        raise
    except Exception as e:
        logger.error(f"Batch evaluation error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Batch evaluation failed: {str(e)}")


@app.post("/api/eval-runs")
async def start_eval_run(request: StartEvalRunRequest, service: EvalWizardService = Depends(get_service)):
    """Kick off a background eval run and return its id for polling."""
    job = await service.start_eval_run(request.project_id, request.criteria_ids, request.scenario_ids)
    return {"status": "ok", "eval_run": job.to_dict(include_results=False)}


@app.get("/api/eval-runs/{run_id}")
async def get_eval_run(run_id: str, service: EvalWizardService = Depends(get_service)):
    """Status of an eval run, with results and a summary once it has finished."""
    job = service.get_eval_run(run_id)
    return {
        "eval_run": job.to_dict(),
        "summary": service.summarize_eval_run(run_id),
    }


@app.get("/api/eval-runs/{run_id}/export")
async def export_eval_run(run_id: str, service: EvalWizardService = Depends(get_service)):
    """Download a completed run's verdicts as CSV."""
    content = service.export_eval_run(run_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="eval-results-{run_id}.csv"'},
    )


# ─── Calibration Endpoints ───────────────────────────────────────────────────

@app.post("/api/calibration/generate")
async def generate_calibration(
    request: GenerateCalibrationRequest,
    service: EvalWizardService = Depends(get_service),
):
    """Generate and execute the training conversations the user will grade."""
    try:
        conversations = await service.generate_calibration(request.project_id, count=request.count)
        return {"conversations": [c.to_dict() for c in conversations]}
    except (PreconditionError, NotFoundError):
        raise
    except Exception as e:
        logger.error(f"Generate calibration error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Calibration generation failed: {str(e)}")


@app.post("/api/calibration/grade")
async def grade_conversation(request: GradeRequest, service: EvalWizardService = Depends(get_service)):
    """Record the user's verdict on one training conversation."""
    graded = service.grade(request.project_id, request.conversation_id, request.passed, request.reasoning)
    return {
        "status": "ok",
        "conversation": graded.to_dict(),
        "progress": service.get_grading(request.project_id)["progress"],
    }


@app.get("/api/calibration/grade")
async def get_grading(project_id: str, service: EvalWizardService = Depends(get_service)):
    """Training conversations and grading progress for a project."""
    grading = service.get_grading(project_id)
    return {
        "conversations": [c.to_dict() for c in grading["conversations"]],
        "progress": grading["progress"],
    }


@app.post("/api/calibration/analyze")
async def analyze_calibration(request: AnalyzeRequest, service: EvalWizardService = Depends(get_service)):
    """Derive personalized criteria and few-shot examples from the graded conversations."""
    try:
        calibration = await service.analyze_calibration(request.project_id)
        return {"calibration": calibration.to_dict()}
    except (PreconditionError, NotFoundError):
        raise
    except Exception as e:
        logger.error(f"Analyze calibration error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Calibration analysis failed: {str(e)}")


@app.get("/api/calibration/analyze")
async def get_calibration(project_id: str, service: EvalWizardService = Depends(get_service)):
    return {"calibration": service.get_calibration(project_id).to_dict()}


@app.post("/api/calibration/approve")
async def approve_calibration(request: ApproveRequest, service: EvalWizardService = Depends(get_service)):
    """Approve the calibration so it conditions every later judge call for the project."""
    criteria = None
    if request.criteria is not None:
        criteria = [Criterion.from_dict(c.model_dump()) for c in request.criteria]
    calibration = service.approve_calibration(request.project_id, criteria)
    return {"status": "ok", "calibration": calibration.to_dict()}


# ─── Server Entry Point ──────────────────────────────────────────────────────

def start():
    """Entry point for running the server."""
    import uvicorn

    logger.info(f"Starting Eval Wizard API on {config.API_HOST}:{config.API_PORT}")
    logger.info(
        f"Subject: {config.SUBJECT_PROVIDER}/{config.SUBJECT_MODEL} | "
        f"Judge: {config.JUDGE_PROVIDER}/{config.JUDGE_MODEL}"
    )
    uvicorn.run(
        "api.server:app",
        host=config.API_HOST,
        port=config.API_PORT,
    )


if __name__ == "__main__":
    start()
