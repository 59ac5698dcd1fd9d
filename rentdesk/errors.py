from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class AccessDenied(ServiceError):
    status_code = 403


class InvalidStateTransition(ServiceError):
    status_code = 409


class ExternalDependencyFailure(ServiceError):
    status_code = 400


def format_errors(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{loc}: {err['msg']}")
    return "Validation failed: " + "; ".join(parts)


def validate(schema: type[BaseModel], data):
    """
    Parse loosely-typed input into `schema`.
    All violations are folded into one ValidationFailed message.
    """
    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(format_errors(e.errors())) from e


def register_error_handlers(app: FastAPI):
    @app.exception_handler(ServiceError)
    async def _service_error(request: Request, exc: ServiceError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": type(exc).__name__},
        )

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError):
        # malformed query/path/body never reaches a service
        return JSONResponse(
            status_code=ValidationFailed.status_code,
            content={"detail": format_errors(exc.errors()), "error": ValidationFailed.__name__},
        )
