"""
Response envelope and API error codes

Every JSON endpoint answers with
``{success, message, data?, error_code?, errors?, timestamp}``.
"""
from enum import IntEnum
from typing import Any, Dict, List, Optional

from jobtrail.utils.datetime_utils import utc_now_iso


class ErrorCode(IntEnum):
    """Numeric error codes returned alongside HTTP status codes"""
    # Authentication (1xxx)
    UNAUTHORIZED = 1001
    INVALID_TOKEN = 1002
    TOKEN_EXPIRED = 1003
    FORBIDDEN = 1004

    # Validation (2xxx)
    VALIDATION_ERROR = 2001
    INVALID_INPUT = 2002
    MISSING_REQUIRED_FIELD = 2003
    INVALID_FORMAT = 2004

    # Resources (3xxx)
    NOT_FOUND = 3001
    ALREADY_EXISTS = 3002
    DUPLICATE_ENTRY = 3003

    # Files (4xxx)
    FILE_TOO_LARGE = 4001
    INVALID_FILE_TYPE = 4002
    UPLOAD_FAILED = 4003
    FILE_NOT_FOUND = 4004

    # Server (5xxx)
    INTERNAL_ERROR = 5001
    DATABASE_ERROR = 5002
    EXTERNAL_SERVICE_ERROR = 5003

    # Network (6xxx)
    NETWORK_ERROR = 6001
    TIMEOUT = 6002


STATUS_ERROR_CODES = {
    400: ErrorCode.INVALID_INPUT,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.ALREADY_EXISTS,
    422: ErrorCode.VALIDATION_ERROR,
    502: ErrorCode.EXTERNAL_SERVICE_ERROR,
    503: ErrorCode.EXTERNAL_SERVICE_ERROR,
    504: ErrorCode.TIMEOUT,
}


def error_code_for_status(status_code: int) -> ErrorCode:
    return STATUS_ERROR_CODES.get(status_code, ErrorCode.INTERNAL_ERROR)


def success_response(data: Any = None, message: str = "Success") -> Dict[str, Any]:
    """Build a success envelope; ``data`` is omitted when None"""
    body: Dict[str, Any] = {
        "success": True,
        "message": message,
        "timestamp": utc_now_iso(),
    }
    if data is not None:
        body["data"] = data
    return body


def error_response(
    message: str,
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    errors: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Build an error envelope"""
    body: Dict[str, Any] = {
        "success": False,
        "message": message,
        "error_code": int(error_code),
        "timestamp": utc_now_iso(),
    }
    if errors:
        body["errors"] = errors
    return body
