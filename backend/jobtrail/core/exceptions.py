"""
Domain exceptions raised by services and routes
"""
from typing import Any, Dict, List, Optional

from jobtrail.core.responses import ErrorCode


class JobTrailError(Exception):
    """Base error carrying an HTTP status and an API error code"""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.headers: Optional[Dict[str, str]] = None
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.errors = errors


class NotFoundError(JobTrailError):
    status_code = 404
    error_code = ErrorCode.NOT_FOUND


class PermissionDeniedError(JobTrailError):
    status_code = 403
    error_code = ErrorCode.FORBIDDEN


class ConflictError(JobTrailError):
    status_code = 409
    error_code = ErrorCode.ALREADY_EXISTS


class ValidationFailedError(JobTrailError):
    status_code = 400
    error_code = ErrorCode.VALIDATION_ERROR


class APIError(JobTrailError):
    """Error with an explicit HTTP status, raised directly from routes"""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: ErrorCode,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message, error_code=error_code, errors=errors)
        self.status_code = status_code
        self.headers = headers
