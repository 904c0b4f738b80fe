"""
Prompts sent to the judge and generator models.

Each builder returns the user-message text for a single request. The output
contracts these prompts ask for are parsed in eval_wizard.parsing:
  - judge prompts:      "Reasoning: ...\\nVerdict: PASS|FAIL"
  - generation prompts: a bare JSON array of records
"""

import json
from typing import Any, Dict, List, Optional, Sequence

from eval_wizard.models import CheckpointKind, Criterion, GradedExample, Message, Persona, Project

JUDGE_SYSTEM_PROMPT = (
    "You are a careful, consistent evaluator of AI assistant conversations. "
    "You grade strictly against the criterion you are given and always finish "
    "with a single PASS or FAIL verdict in the requested format."
)

_VERDICT_FORMAT = """First, provide your reasoning (2-3 sentences explaining why it passes or fails, citing specific turns if relevant).
Then, give your final verdict as either "PASS" or "FAIL".

Format your response as:
Reasoning: [Your reasoning here]
Verdict: [PASS or FAIL]"""

_CHECKPOINT_NOTES = {
    CheckpointKind.INTERMEDIATE: (
        "Note: This is a checkpoint evaluation. Evaluate the conversation so far, "
        "understanding that it may continue."
    ),
    CheckpointKind.FINAL: (
        "Note: This is the complete conversation. Evaluate the entire exchange holistically."
    ),
}


def render_transcript(transcript: Sequence[Message]) -> str:
    """Render messages as alternating labelled turns."""
    return "\n\n".join(
        f"Student: {m.content}" if m.role == "user" else f"AI: {m.content}"
        for m in transcript
    )


def render_few_shot_examples(examples: Sequence[GradedExample]) -> str:
    if not examples:
        return ""

    parts = [
        "## Training Examples\n\n"
        "Here are examples of conversations previously graded by the user, "
        "which demonstrate their quality standards:\n"
    ]
    for idx, example in enumerate(examples, start=1):
        verdict = "PASS" if example.verdict.passed else "FAIL"
        parts.append(
            f"### Example {idx}: {verdict}\n\n"
            f"{render_transcript(example.transcript)}\n\n"
            f"User's Assessment: \"{example.verdict.reasoning}\"\n"
            f"Verdict: {verdict}\n"
        )
    parts.append(
        "These examples show what the user considers good (PASS) and poor (FAIL) quality. "
        "Use these standards when evaluating new conversations.\n"
    )
    return "\n".join(parts)


def build_conversation_judge_prompt(
    transcript: Sequence[Message],
    criterion: Criterion,
    kind: CheckpointKind,
    few_shot_examples: Optional[Sequence[GradedExample]] = None,
) -> str:
    few_shot_section = render_few_shot_examples(few_shot_examples or [])
    if few_shot_section:
        standard = (
            "Consider the training examples above to understand the user's quality standards "
            "and apply those same standards to this new conversation."
        )
    else:
        standard = "Evaluate based on the criterion description provided."

    return f"""You are evaluating an AI assistant's performance across a conversation using personalized quality standards.

## Conversation to Evaluate:

{render_transcript(transcript)}

{_CHECKPOINT_NOTES[kind]}

{few_shot_section}
## Evaluation Criterion:

**{criterion.name}**: {criterion.description}

## Your Task:

Evaluate if the conversation PASSES or FAILS on the criterion "{criterion.name}". {standard}

For conversation-level criteria, evaluate across ALL turns:
- Does the AI remember and build on earlier exchanges?
- Is the flow natural and coherent?
- Does the AI maintain an appropriate tone and approach?

{_VERDICT_FORMAT}"""


def build_response_judge_prompt(user_query: str, ai_response: str, criterion: Criterion) -> str:
    return f"""You are evaluating an AI educational assistant's response.

Student Query: {user_query}

AI Response: {ai_response}

Evaluate if the response PASSES or FAILS on this criterion:
- {criterion.name}: {criterion.description}

{_VERDICT_FORMAT}"""


def build_criteria_derivation_prompt(project: Optional[Project], feedback: List[Dict[str, Any]]) -> str:
    name = project.name if project else "AI Assistant"
    description = project.description if project else "N/A"
    return f"""You are analyzing user feedback on AI assistant conversations to derive personalized quality criteria.

Project: {name}
Description: {description or "N/A"}

The user has graded {len(feedback)} conversations. Here is their feedback:

{json.dumps(feedback, indent=2)}

Your task:
1. Analyze patterns in what the user valued (passes) vs. criticized (fails)
2. Identify 4-6 key quality criteria that capture the user's standards
3. Each criterion should be specific, clearly derived from the feedback, applicable across conversations, and distinct from the others

For each criterion, provide:
- "name": short, clear name
- "description": what this criterion measures and how to evaluate it (2-3 sentences)
- "derivedFrom": the pattern in the user's feedback that led to this criterion

Format your response as a JSON array:
[
  {{
    "name": "Criterion Name",
    "description": "What this measures and how to evaluate it...",
    "derivedFrom": "User consistently praised conversations where X but criticized conversations lacking Y..."
  }}
]

Provide ONLY the JSON array, no other text."""


def build_persona_prompt(audience: Dict[str, str]) -> str:
    def field(key: str) -> str:
        return audience.get(key) or "Not specified"

    return f"""You are helping create realistic user personas for testing an AI assistant.

Audience Information:
- Age Range: {field("age_range")}
- Role/Identity: {field("role")}
- Experience Level: {field("experience_level")}
- Goals: {field("goals")}
- Challenges: {field("challenges")}
- Additional Context: {field("additional_context")}

Create 3-5 diverse, realistic personas that represent this audience. Each persona should be distinct.

For each persona, provide:
- "name": a descriptive label (e.g. "Struggling High School Algebra Student")
- "demographics": {{"ageRange": ..., "role": ..., "experienceLevel": ...}}
- "goals": 2-4 specific goals
- "challenges": 2-4 specific challenges
- "context": a paragraph on their communication style and how they would use an AI assistant

Format your response as a JSON array of persona objects.

Provide ONLY the JSON array, no other text."""


def render_personas(personas: Sequence[Persona]) -> str:
    return "\n\n".join(
        f"{i}. {p.name}\n"
        f"   Demographics: {json.dumps(p.demographics)}\n"
        f"   Goals: {', '.join(p.goals)}\n"
        f"   Challenges: {', '.join(p.challenges)}\n"
        f"   Context: {p.context}"
        for i, p in enumerate(personas)
    )


def build_scenario_prompt(project: Project, personas: Sequence[Persona], count: int) -> str:
    return f"""You are creating a comprehensive test suite for evaluating an AI assistant.

Project: {project.name}
Description: {project.description}

Available Personas (by index):
{render_personas(personas)}

Generate {count} diverse test case scenarios. Each scenario should:
1. Use one of the personas above (distribute evenly across all personas)
2. Have 3-5 realistic user messages that build on each other
3. Cover typical interactions, challenging situations, edge cases and boundary testing (off-topic or inappropriate requests)
4. Be realistic to how that persona would communicate

For each scenario, provide:
- "personaIndex": which persona (0-{len(personas) - 1})
- "name": short descriptive name
- "description": what this scenario tests
- "turns": 3-5 user messages, each {{"content": "...", "evaluateAfter": true|false}}
- "expectedBehavior": what good AI behavior looks like here

Mark 1-2 mid-conversation checkpoints with evaluateAfter: true, and always mark the final turn as evaluateAfter: true.

Provide ONLY the JSON array, no other text."""


def build_calibration_scenario_prompt(project: Project, personas: Sequence[Persona], count: int) -> str:
    return f"""You are helping create training conversations for evaluating an AI assistant.

Project: {project.name}
Description: {project.description}

Available Personas (by index):
{render_personas(personas)}

Generate {count} diverse conversation scenarios. Each scenario should:
1. Use one of the personas above (distribute evenly across personas)
2. Have 3-5 realistic user messages that build on each other
3. Represent different types of interactions (easy, challenging, edge cases)

For each scenario, provide:
- "personaIndex": which persona (0-{len(personas) - 1})
- "turns": 3-5 user messages, each {{"content": "...", "evaluateAfter": true|false}}

Provide ONLY the JSON array, no other text."""
