"""
Application exceptions and django-ninja error handlers.

Services raise these exceptions; the API layer catches them
via ninja's exception handlers and returns proper HTTP responses.

Taxonomy:
  ValidationError: bad caller input, never reaches the CA (400)
  NotFoundError:   unknown record ID (404)
  CAError:         step CLI exited non-zero (500)
  CATimeoutError:  step CLI exceeded its deadline (500)
  ParseError:      malformed or unparseable certificate material (500)
  AssembleError:   archive / PKCS#12 construction failed (500)
  StoreError:      persistence failure (500)
"""

import structlog
from django.http import HttpRequest, HttpResponse
from ninja import NinjaAPI
from ninja.errors import ValidationError as SchemaValidationError

logger = structlog.get_logger(__name__)


class ApplicationError(Exception):
    """Base for all business-logic errors."""

    def __init__(self, message: str, extra: dict | None = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class NotFoundError(ApplicationError):
    """Resource not found."""
    pass


class ValidationError(ApplicationError):
    """Business rule validation failed."""
    pass


class ExternalServiceError(ApplicationError):
    """An external tool (step CLI, openssl) failed."""
    pass


class CAError(ExternalServiceError):
    """
    The CA agent exited with a non-zero status.

    Carries the exit status and the captured combined output so callers
    can act on the diagnostic. Output never contains provisioner secrets:
    those are passed to the agent by file path only.
    """

    def __init__(self, message: str, *, exit_code: int | None = None, output: str = ""):
        super().__init__(message, {"exit_code": exit_code, "output": output})
        self.exit_code = exit_code
        self.output = output


class CATimeoutError(CAError):
    """The CA agent did not finish within its deadline."""

    def __init__(self, message: str, *, timeout: float, output: str = ""):
        super().__init__(message, exit_code=None, output=output)
        self.timeout = timeout
        self.extra["timeout"] = timeout


class ParseError(ExternalServiceError):
    """Certificate material could not be decoded or its fields extracted."""

    MALFORMED = "malformed"
    UNPARSEABLE = "unparseable"

    def __init__(self, message: str, *, reason: str):
        super().__init__(message, {"reason": reason})
        self.reason = reason


class AssembleError(ApplicationError):
    """The download archive (or its PKCS#12 member) could not be built."""
    pass


class StoreError(ApplicationError):
    """The lifecycle store rejected a read or write."""
    pass


def configure_exception_handlers(api: NinjaAPI) -> None:
    """Register custom exception handlers on a NinjaAPI instance."""

    @api.exception_handler(SchemaValidationError)
    def handle_schema_validation(request: HttpRequest, exc: SchemaValidationError) -> HttpResponse:
        return api.create_response(
            request,
            {"detail": "Invalid request payload.", "errors": exc.errors},
            status=400,
        )

    @api.exception_handler(NotFoundError)
    def handle_not_found(request: HttpRequest, exc: NotFoundError) -> HttpResponse:
        return api.create_response(
            request,
            {"detail": exc.message, **exc.extra},
            status=404,
        )

    @api.exception_handler(ValidationError)
    def handle_validation(request: HttpRequest, exc: ValidationError) -> HttpResponse:
        return api.create_response(
            request,
            {"detail": exc.message, **exc.extra},
            status=400,
        )

    @api.exception_handler(ExternalServiceError)
    def handle_external_service(request: HttpRequest, exc: ExternalServiceError) -> HttpResponse:
        logger.error(
            "external_service_error",
            error_type=type(exc).__name__,
            message=exc.message,
            **exc.extra,
        )
        return api.create_response(
            request,
            {"detail": exc.message, **exc.extra},
            status=500,
        )

    @api.exception_handler(AssembleError)
    def handle_assemble(request: HttpRequest, exc: AssembleError) -> HttpResponse:
        logger.error("bundle_assembly_error", message=exc.message)
        return api.create_response(
            request,
            {"detail": exc.message},
            status=500,
        )

    @api.exception_handler(StoreError)
    def handle_store(request: HttpRequest, exc: StoreError) -> HttpResponse:
        logger.error("store_error", message=exc.message)
        return api.create_response(
            request,
            {"detail": exc.message},
            status=500,
        )
