from .errors import ConflictError, EngineError, ForbiddenError, NotFoundError, ValidationError

__all__ = [
    "EngineError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "ForbiddenError",
]
