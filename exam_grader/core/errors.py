import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GradingError(Exception):
    """Base class for errors raised by the assessment services."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(GradingError):
    status_code = 422


class Unauthorized(GradingError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(GradingError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(GradingError):
    status_code = status.HTTP_404_NOT_FOUND


class EssayRegradeRejected(GradingError):
    status_code = status.HTTP_400_BAD_REQUEST


class OracleUnavailable(GradingError):
    """The scoring oracle could not be reached or failed to answer."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class OracleRefusal(GradingError):
    """The oracle answered but declined to grade for safety reasons."""

    status_code = 422


class ParseMismatch(GradingError):
    """An oracle reply did not follow the expected grammar."""

    status_code = 422


async def grading_error_handler(request: Request, exc: GradingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail, exc_info=exc)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
