"""
Eval Wizard - Checkpoint Extraction

A checkpoint is a turn index after which the conversation so far is scored.
The last turn is always a checkpoint (the "final" one), whether or not it is
marked; every other marked turn is an intermediate checkpoint.
"""

from typing import List, Sequence

from eval_wizard.models import CheckpointKind, Transcript, Turn


def checkpoint_indices(turns: Sequence[Turn]) -> List[int]:
    """Ordered checkpoint turn indices, always ending with the last turn."""
    if not turns:
        return []
    last = len(turns) - 1
    indices = [i for i, turn in enumerate(turns) if turn.checkpoint and i != last]
    indices.append(last)
    return indices


def checkpoint_kind(index: int, turns: Sequence[Turn]) -> CheckpointKind:
    return CheckpointKind.FINAL if index == len(turns) - 1 else CheckpointKind.INTERMEDIATE


def transcript_prefix(transcript: Transcript, index: int) -> Transcript:
    """Messages through the assistant reply to turn ``index`` (2 * (index + 1) of them)."""
    end = 2 * (index + 1)
    if end > len(transcript):
        raise ValueError(f"Checkpoint at turn {index} is past the end of a {len(transcript)}-message transcript")
    return list(transcript[:end])
