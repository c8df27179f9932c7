"""Custom exception classes for the application."""

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


class NotFoundError(HTTPException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
        )


class ServiceUnavailableError(HTTPException):
    def __init__(self, detail: str = "Service unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )


# ── Rules engine ───────────────────────────────────


class RulesEngineError(Exception):
    """Base class for classification engine failures."""

    kind = "error"

    def __init__(self, message: str, *, line_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.line_id = line_id


class ConfigurationError(RulesEngineError):
    """Rule storage is unreachable or holds rules that cannot be loaded."""

    kind = "configuration"


class ContextResolutionError(RulesEngineError):
    """A line's data could not be resolved enough to build its context."""

    kind = "context"


class ArchivedLineError(ContextResolutionError):
    """The accounting line has been archived (soft-deleted) and is not classified."""

    kind = "archived"


class ApplicationError(RulesEngineError):
    """Outputs of a matched rule could not be persisted."""

    kind = "application"


_ENGINE_STATUS = {
    "configuration": status.HTTP_503_SERVICE_UNAVAILABLE,
    "context": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "archived": status.HTTP_409_CONFLICT,
    "application": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def rules_engine_exception_handler(request: Request, exc: RulesEngineError) -> JSONResponse:
    status_code = _ENGINE_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.warning("rules_engine_error", kind=exc.kind, line_id=exc.line_id, error=exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind, "line_id": exc.line_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RulesEngineError, rules_engine_exception_handler)
