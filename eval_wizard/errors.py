"""
Eval Wizard - Errors

Failure taxonomy for the evaluation pipeline:
  - GatewayError: transport/auth/rate-limit/timeout from a model backend.
    Recovered at the smallest unit of work (one judge call, one scenario).
  - ParseError: a model reply that doesn't follow the expected output contract.
    Recovered with a deterministic fallback.
  - PreconditionError: the caller asked for something that can't run
    (ungraded calibration batch, no criteria selected). Surfaced, never retried.
  - NotFoundError: an unknown project/scenario/job id.
"""

from typing import Optional


class EvalWizardError(Exception):
    """Base class for all eval wizard errors."""


class GatewayError(EvalWizardError):
    """A model backend call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(EvalWizardError):
    """A model reply could not be parsed into the expected structure."""


class PreconditionError(EvalWizardError):
    """A request was rejected because its inputs are incomplete."""


class NotFoundError(EvalWizardError):
    """A referenced entity does not exist."""
