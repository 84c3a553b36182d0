"""
Error taxonomy shared by the validation, auth and store layers.

Every error here is surfaced to the caller by the handlers registered in
``register_error_handlers``; nothing is retried.
"""
import logging
from typing import List, NamedTuple

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FieldError(NamedTuple):
    field: str
    message: str


class ValidationError(Exception):
    """A payload failed its rule set. Carries one entry per offending field."""

    status_code = 400

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))

    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class AuthorizationError(Exception):
    def __init__(self, message: str = "Not authorized", status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class StoreError(Exception):
    def __init__(self, message: str = "Database error", status_code: int = 503):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(StoreError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "message": "Validation failed",
                "errors": [e._asdict() for e in exc.errors],
            },
        )

    @app.exception_handler(AuthorizationError)
    async def _authorization_error(request: Request, exc: AuthorizationError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})
