# portfolio_engine/domain/errors.py
from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """
    Base for every rule violation raised by the engine.

    status_code / code are what the HTTP layer renders; context carries
    the ids involved so log lines and error bodies can name them.
    """

    status_code: int = 400
    code: str = "engine_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"detail": self.message, "error": self.code}
        if self.context:
            out["context"] = self.context
        return out


class NotFoundError(EngineError):
    status_code = 404
    code = "not_found"


class ConflictError(EngineError):
    status_code = 409
    code = "conflict"


class ValidationError(EngineError, ValueError):
    status_code = 422
    code = "validation"


class ForbiddenError(EngineError):
    # raised by the authorization layer in front of the engine, never by services
    status_code = 403
    code = "forbidden"
