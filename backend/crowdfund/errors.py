"""Domain error taxonomy.

Every error raised by the round lifecycle and evaluation services derives
from ``DomainError``.  The HTTP layer converts them into a typed JSON body
(``{"success": false, "error": <code>, "message": ...}``) in ``main.py``,
so route handlers never have to catch them individually.

- ``ValidationError``  — bad input (amount out of bounds, missing criterion)
- ``StateError``       — operation invalid for the current status
- ``NotFoundError``    — referenced round / commitment / evaluation absent
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all expected, user-facing domain failures."""

    http_status: int = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if self.context:
            payload["context"] = self.context
        return payload


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(DomainError):
    http_status = 422


class BelowMinimum(ValidationError):
    pass


class AboveMaximum(ValidationError):
    pass


class MissingCriterion(ValidationError):
    pass


class InvalidScore(ValidationError):
    pass


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class StateError(DomainError):
    http_status = 409


class RoundNotLive(StateError):
    pass


class InvalidRoundState(StateError):
    pass


class InvalidTransition(StateError):
    pass


class InvalidCommitmentState(StateError):
    pass


class EvaluationAlreadySubmitted(StateError):
    pass


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

class NotFoundError(DomainError):
    http_status = 404
