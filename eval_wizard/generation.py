"""
Eval Wizard - Persona & Scenario Generation

Uses the generator model to draft the wizard's inputs:
  - personas describing the assistant's audience
  - multi-turn test scenarios (with checkpoint flags) for the full evaluation
  - training conversations for the user to grade during calibration

Every generator falls back to a deterministic default when the model call or
its JSON output fails, so the wizard can always move on to the next step.
"""

import logging
from typing import Any, Dict, List, Sequence

from eval_wizard.executor import ConversationExecutor
from eval_wizard.gateway import ModelBackend
from eval_wizard.models import GradedExample, Persona, Project, Scenario, Turn, new_id
from eval_wizard.parsing import extract_json_array
from eval_wizard.prompts import (
    build_calibration_scenario_prompt,
    build_persona_prompt,
    build_scenario_prompt,
)

logger = logging.getLogger(__name__)

CALIBRATION_CONVERSATION_COUNT = 10


def _pick_persona(personas: Sequence[Persona], index: Any) -> Persona:
    try:
        i = int(index)
    except (TypeError, ValueError):
        return personas[0]
    return personas[i] if 0 <= i < len(personas) else personas[0]


def _parse_turns(raw_turns: Any) -> List[Turn]:
    """Normalize generated turns and force the last one to be a checkpoint."""
    turns = []
    for t in raw_turns or []:
        if isinstance(t, dict):
            turn = Turn.from_dict(t)
        else:
            turn = Turn(content=str(t))
        if turn.content.strip():
            turns.append(turn)
    if turns and not turns[-1].checkpoint:
        turns[-1] = Turn(content=turns[-1].content, checkpoint=True)
    return turns


# ─── Personas ────────────────────────────────────────────────────────────────


def fallback_personas(project_id: str, audience: Dict[str, str]) -> List[Persona]:
    return [
        Persona(
            id=new_id("persona"),
            project_id=project_id,
            name="Typical User",
            demographics={
                "ageRange": audience.get("age_range") or "Unknown",
                "role": audience.get("role") or "User",
                "experienceLevel": audience.get("experience_level") or "Beginner",
            },
            goals=[audience["goals"]] if audience.get("goals") else ["Learn and improve"],
            challenges=[audience["challenges"]] if audience.get("challenges") else ["Understanding new concepts"],
            context=audience.get("additional_context") or "A typical user looking for assistance with their goals.",
        )
    ]


async def generate_personas(backend: ModelBackend, project_id: str, audience: Dict[str, str]) -> List[Persona]:
    """Draft 3-5 personas from a description of the assistant's audience."""
    try:
        raw = await backend.complete([{"role": "user", "content": build_persona_prompt(audience)}])
        records = extract_json_array(raw)
    except Exception as e:
        logger.error(f"Error generating personas, using fallback: {e}")
        return fallback_personas(project_id, audience)

    personas = [Persona.from_dict({**r, "id": None}, project_id=project_id) for r in records if r.get("name")]
    if not personas:
        return fallback_personas(project_id, audience)
    logger.info(f"Generated {len(personas)} personas for project {project_id}")
    return personas


# ─── Test scenarios ──────────────────────────────────────────────────────────


def fallback_scenarios(personas: Sequence[Persona], count: int) -> List[Scenario]:
    scenarios = []
    for persona in personas:
        goal = persona.goals[0] if persona.goals else "my goal"
        challenge = persona.challenges[0] if persona.challenges else "understanding this"
        scenarios.append(Scenario(
            id=new_id("scenario"),
            name=f"Basic Interaction - {persona.name}",
            description=f"Test basic interaction with {persona.name}",
            turns=(
                Turn(f"Hi, I need help with {goal}"),
                Turn(f"I'm having trouble with {challenge}", checkpoint=True),
                Turn("Can you explain that in a different way?", checkpoint=True),
            ),
            expected_behavior="AI should provide clear, helpful guidance appropriate to the user's level and goals",
            persona_name=persona.name,
        ))
        scenarios.append(Scenario(
            id=new_id("scenario"),
            name=f"Edge Case - {persona.name}",
            description=f"Test edge case handling with {persona.name}",
            turns=(Turn("Can you just give me the answer?", checkpoint=True),),
            expected_behavior="AI should maintain boundaries and guide towards understanding rather than giving direct answers",
            persona_name=persona.name,
        ))
    return scenarios[:count]


async def generate_scenarios(
    backend: ModelBackend,
    project: Project,
    personas: Sequence[Persona],
    count: int = 50,
) -> List[Scenario]:
    """Draft up to ``count`` multi-turn test scenarios spread across the personas."""
    if not personas:
        raise ValueError("At least one persona is required to generate scenarios")

    try:
        raw = await backend.complete(
            [{"role": "user", "content": build_scenario_prompt(project, personas, count)}],
        )
        records = extract_json_array(raw)
    except Exception as e:
        logger.error(f"Error generating test scenarios, using fallback: {e}")
        return fallback_scenarios(personas, count)

    scenarios = []
    for idx, record in enumerate(records[:count]):
        turns = _parse_turns(record.get("turns"))
        if not turns:
            continue
        persona = _pick_persona(personas, record.get("personaIndex"))
        scenarios.append(Scenario(
            id=new_id("scenario"),
            name=record.get("name") or f"Test Case {idx + 1}",
            description=record.get("description") or f"Test conversation with {persona.name}",
            turns=tuple(turns),
            expected_behavior=record.get("expectedBehavior") or "AI should respond appropriately",
            persona_name=persona.name,
        ))

    if not scenarios:
        return fallback_scenarios(personas, count)
    logger.info(f"Generated {len(scenarios)} test scenarios for project {project.id}")
    return scenarios


# ─── Calibration conversations ───────────────────────────────────────────────


async def generate_calibration_conversations(
    backend: ModelBackend,
    executor: ConversationExecutor,
    project: Project,
    personas: Sequence[Persona],
    count: int = CALIBRATION_CONVERSATION_COUNT,
) -> List[GradedExample]:
    """
    Generate ``count`` training scenarios, run each against the project's
    system prompt, and return them as ungraded examples for the user to grade.
    Scenarios whose execution fails are skipped.
    """
    if not personas:
        raise ValueError("No personas found. Create personas first.")

    try:
        raw = await backend.complete(
            [{"role": "user", "content": build_calibration_scenario_prompt(project, personas, count)}],
        )
        drafts = [
            (_pick_persona(personas, r.get("personaIndex")), _parse_turns(r.get("turns")))
            for r in extract_json_array(raw)[:count]
        ]
        drafts = [(p, turns) for p, turns in drafts if turns]
        if not drafts:
            raise ValueError("no usable scenarios in response")
    except Exception as e:
        logger.error(f"Error generating calibration scenarios, using fallback: {e}")
        drafts = [(p, list(s.turns)) for p, s in zip(personas[:3], fallback_scenarios(personas[:3], 6)[::2])]

    examples = []
    for i, (persona, turns) in enumerate(drafts):
        logger.info(f"Executing calibration conversation {i + 1}/{len(drafts)}")
        try:
            transcript = await executor.execute(project.system_prompt, turns)
        except Exception as e:
            logger.error(f"Error executing calibration conversation {i + 1}: {e}")
            continue
        examples.append(GradedExample(
            id=new_id("grading"),
            project_id=project.id,
            transcript=tuple(transcript),
            persona_name=persona.name,
        ))
    return examples
