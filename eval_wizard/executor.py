"""
Eval Wizard - Conversation Executor

Drives a multi-turn dialogue against the subject model. Each turn's call
receives the transcript accumulated so far, so the subject model "remembers"
earlier exchanges; turn i+1 is never sent before turn i's reply is appended.
"""

import logging
from typing import List, Optional, Sequence

from eval_wizard.gateway import ModelBackend
from eval_wizard.models import ASSISTANT, USER, Message, Transcript, Turn

logger = logging.getLogger(__name__)


def context_window(transcript: Transcript, max_messages: Optional[int]) -> Transcript:
    """
    The slice of the transcript sent as context for the next subject call.

    With no limit the whole transcript is sent. With a limit, the most recent
    messages are kept and the window always starts on a user message.
    """
    if not max_messages or len(transcript) <= max_messages:
        return list(transcript)
    window = transcript[-max_messages:]
    while window and window[0].role != USER:
        window = window[1:]
    return list(window)


class ConversationExecutor:
    """
    Executes scenarios against a subject model.

    Usage:
        executor = ConversationExecutor(subject_backend)
        transcript = await executor.execute(system_prompt, scenario.turns)
    """

    def __init__(self, backend: ModelBackend, max_context_messages: Optional[int] = None):
        self.backend = backend
        self.max_context_messages = max_context_messages

    async def execute(self, system_prompt: str, turns: Sequence[Turn]) -> Transcript:
        """
        Run every turn in order and return the full transcript.

        Raises:
            GatewayError: if any subject call fails. Later turns depend on
                earlier replies, so a partial transcript is never returned.
        """
        transcript: List[Message] = []

        for i, turn in enumerate(turns):
            transcript.append(Message(role=USER, content=turn.content))

            context = context_window(transcript, self.max_context_messages)
            reply = await self.backend.complete(
                [m.to_dict() for m in context],
                system_prompt=system_prompt,
            )
            logger.debug(f"Turn {i + 1}/{len(turns)}: got {len(reply)} chars from subject model")

            transcript.append(Message(role=ASSISTANT, content=reply))

        return transcript

    async def execute_up_to(self, system_prompt: str, turns: Sequence[Turn], up_to_index: int) -> Transcript:
        """Execute the conversation through turn ``up_to_index`` (inclusive)."""
        return await self.execute(system_prompt, list(turns)[: up_to_index + 1])
