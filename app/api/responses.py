"""Translation of domain errors into HTTP responses."""
from fastapi.responses import JSONResponse
import logging

from app.exceptions import ShiftChangeError, format_error_for_api


logger = logging.getLogger(__name__)


def error_response(error: ShiftChangeError) -> JSONResponse:
    """
    Render a domain error with the status code of its category.

    Args:
        error: Domain error raised by a service

    Returns:
        JSON response carrying format_error_for_api(error)
    """
    if error.status_code >= 500:
        logger.error(f"{error.error_code}: {error.details}")
    return JSONResponse(status_code=error.status_code, content=format_error_for_api(error))
