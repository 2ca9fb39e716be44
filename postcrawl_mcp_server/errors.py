"""Error taxonomy and normalization for the PostCrawl MCP Server.

Every failure that leaves the API client is a :class:`StructuredError` tagged
with exactly one :class:`ErrorKind`.  The kind alone determines the HTTP status
and the JSON-RPC error code, via the two tables below.  Rendering is done by
two independent adapters, :func:`to_tool_content` and :func:`to_jsonrpc_error`.
"""

import json
import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional


DOCS_ERROR_URL = "https://docs.postcrawl.com/errors"


class ErrorKind(str, Enum):
    """Error categories exposed to callers."""
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"

    @property
    def error_type(self) -> str:
        """Wire name of the kind, e.g. ``rate_limit_error``."""
        return f"{self.value}_error"


class JSONRPCErrorCode:
    """JSON-RPC 2.0 standard error codes and the server error code."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_ERROR = -32000


JSONRPC_CODES: Dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION: JSONRPCErrorCode.SERVER_ERROR,
    ErrorKind.RATE_LIMIT: JSONRPCErrorCode.SERVER_ERROR,
    ErrorKind.VALIDATION: JSONRPCErrorCode.INVALID_PARAMS,
    ErrorKind.INSUFFICIENT_CREDITS: JSONRPCErrorCode.SERVER_ERROR,
    ErrorKind.FORBIDDEN: JSONRPCErrorCode.SERVER_ERROR,
    ErrorKind.NOT_FOUND: JSONRPCErrorCode.SERVER_ERROR,
    ErrorKind.INTERNAL: JSONRPCErrorCode.INTERNAL_ERROR,
}

HTTP_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.VALIDATION: 400,
    ErrorKind.INSUFFICIENT_CREDITS: 402,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}


def generate_request_id() -> str:
    """Generate a fresh correlation id."""
    return f"req_{uuid.uuid4().hex}"


class StructuredError(Exception):
    """Normalized, taxonomy-tagged error.

    Attributes:
        kind: Error category
        code: Machine-readable error code (e.g. ``invalid_api_key``)
        message: Internal, developer-facing message
        user_message: Message safe to show to the end user
        request_id: Correlation id, inherited from upstream when available
        details: Kind-specific payload (rate limit window, credit balance, field errors)
    """

    def __init__(
        self,
        kind: ErrorKind,
        code: str,
        message: str,
        user_message: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.code = code
        self.message = message
        self.user_message = user_message or message
        self.request_id = request_id or generate_request_id()
        self.details = details

    @property
    def error_type(self) -> str:
        return self.kind.error_type

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_CODES[self.kind]

    @property
    def jsonrpc_code(self) -> int:
        return JSONRPC_CODES[self.kind]

    @property
    def doc_url(self) -> str:
        return f"{DOCS_ERROR_URL}#{self.code}"

    def to_dict(self) -> Dict[str, Any]:
        """Summary used by the tool-content renderer."""
        return {
            "type": self.error_type,
            "code": self.code,
            "request_id": self.request_id,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"StructuredError(kind={self.kind.value!r}, code={self.code!r}, "
            f"request_id={self.request_id!r})"
        )


# Constructors, one per failure the gateway knows how to describe.

def missing_auth_header(request_id: Optional[str] = None) -> StructuredError:
    return StructuredError(
        ErrorKind.AUTHENTICATION,
        "missing_auth_header",
        "Missing Authorization header",
        "Authentication required. Provide your API key as a Bearer token in the Authorization header.",
        request_id,
    )


def invalid_api_key(request_id: Optional[str] = None) -> StructuredError:
    return StructuredError(
        ErrorKind.AUTHENTICATION,
        "invalid_api_key",
        "Invalid API key",
        "The API key provided is invalid. Check your API key and try again.",
        request_id,
    )


def rate_limit_exceeded(
    limit: int,
    remaining: int,
    reset_at: int,
    retry_after: int,
    request_id: Optional[str] = None
) -> StructuredError:
    return StructuredError(
        ErrorKind.RATE_LIMIT,
        "rate_limit_exceeded",
        f"Rate limit exceeded: {remaining}/{limit} requests remaining",
        f"Too many requests. Please retry after {retry_after} seconds.",
        request_id,
        {
            "limit": limit,
            "remaining": remaining,
            "reset_at": reset_at,
            "retry_after": retry_after,
        },
    )


def insufficient_credits(
    balance: float,
    required: float,
    deficit: float,
    request_id: Optional[str] = None
) -> StructuredError:
    return StructuredError(
        ErrorKind.INSUFFICIENT_CREDITS,
        "insufficient_credits",
        f"Insufficient credits: balance {balance}, required {required}",
        "You do not have enough credits to complete this request. Please top up your account.",
        request_id,
        {"balance": balance, "required": required, "deficit": deficit},
    )


def permission_denied(request_id: Optional[str] = None) -> StructuredError:
    return StructuredError(
        ErrorKind.FORBIDDEN,
        "permission_denied",
        "Permission denied",
        "You do not have permission to perform this action.",
        request_id,
    )


def not_found(message: str = "Resource not found", request_id: Optional[str] = None) -> StructuredError:
    return StructuredError(ErrorKind.NOT_FOUND, "not_found", message, message, request_id)


def internal_error(message: str, request_id: Optional[str] = None, code: str = "internal_error") -> StructuredError:
    return StructuredError(
        ErrorKind.INTERNAL,
        code,
        message,
        "An internal error occurred. Please try again later.",
        request_id,
    )


class ValidationErrorBuilder:
    """Accumulates per-field problems into a single validation error."""

    def __init__(self, request_id: Optional[str] = None):
        self.request_id = request_id
        self.field_errors: List[Dict[str, str]] = []

    def add_field_error(self, field: str, code: str, message: str) -> "ValidationErrorBuilder":
        self.field_errors.append({"field": field, "code": code, "message": message})
        return self

    def add_missing_field(self, field: str) -> "ValidationErrorBuilder":
        return self.add_field_error(field, "missing_required", f"{field} is required")

    def add_invalid_format(self, field: str, expected: str) -> "ValidationErrorBuilder":
        return self.add_field_error(field, "invalid_format", f"{field} must be {expected}")

    def build(self) -> StructuredError:
        fields = ", ".join(error["field"] for error in self.field_errors)
        message = f"Validation failed: {fields}" if fields else "Validation failed"
        return StructuredError(
            ErrorKind.VALIDATION,
            "validation_failed",
            message,
            "The request contains invalid parameters. Check the details and try again.",
            self.request_id,
            {"field_errors": list(self.field_errors)},
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _status_line(status_code: int, reason: str) -> str:
    return f"API request failed: {status_code} {reason}".rstrip()


def classify_error_response(
    status_code: int,
    reason: str,
    body: str,
    request_id: Optional[str] = None
) -> StructuredError:
    """Map a non-2xx upstream response to a StructuredError.

    Args:
        status_code: HTTP status of the upstream response
        reason: HTTP reason phrase
        body: Raw response body
        request_id: Locally generated correlation id, used when upstream supplies none

    Returns:
        StructuredError describing the failure
    """
    request_id = request_id or generate_request_id()

    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return internal_error(_status_line(status_code, reason), request_id)

    if not (
        isinstance(payload, dict)
        and payload.get("type") == "error"
        and isinstance(payload.get("error"), dict)
    ):
        return internal_error(_status_line(status_code, reason), request_id)

    error = payload["error"]
    request_id = error.get("request_id") or request_id
    error_type = error.get("type")
    details = error.get("details") if isinstance(error.get("details"), dict) else None

    if error_type == "authentication_error":
        return invalid_api_key(request_id)

    if error_type == "rate_limit_error":
        details = details or {}
        return rate_limit_exceeded(
            limit=details.get("limit") or 0,
            remaining=details.get("remaining") or 0,
            reset_at=details.get("reset_at") or _now_ms() + 60000,
            retry_after=details.get("retry_after") or 60,
            request_id=request_id,
        )

    if error_type == "validation_error":
        builder = ValidationErrorBuilder(request_id)
        field_errors = (details or {}).get("field_errors")
        if isinstance(field_errors, list):
            for field_error in field_errors:
                if not isinstance(field_error, dict) or not field_error.get("field"):
                    continue
                field = field_error["field"]
                code = field_error.get("code")
                if code == "missing_required":
                    builder.add_missing_field(field)
                elif code == "invalid_format":
                    builder.add_invalid_format(field, field_error.get("expected") or "valid format")
                else:
                    builder.add_field_error(
                        field, "invalid_value", field_error.get("message") or f"{field} is invalid"
                    )
        return builder.build()

    if error_type == "insufficient_credits_error":
        details = details or {}
        balance = details.get("balance") or details.get("available")
        required = details.get("required")
        deficit = details.get("deficit")
        if not deficit and _is_number(balance) and _is_number(required):
            deficit = required - balance
        return insufficient_credits(balance or 0, required or 0, deficit or 0, request_id)

    if error_type == "forbidden_error":
        return permission_denied(request_id)

    if error_type == "not_found_error":
        return not_found(error.get("message") or "Resource not found", request_id)

    return internal_error(error.get("message") or "An unexpected error occurred", request_id)


def classify(exc: BaseException) -> Optional[StructuredError]:
    """Return ``exc`` as a StructuredError, or None if it is not one."""
    if isinstance(exc, StructuredError):
        return exc
    return None


def to_tool_content(exc: BaseException) -> str:
    """Render an error as human-readable tool-result text."""
    error = classify(exc)
    if error is not None:
        message = error.user_message
        details: Dict[str, Any] = error.to_dict()
    else:
        message = str(exc) or "Unknown error occurred"
        details = {}
    return f"Error: {message}\n\nDetails: {json.dumps(details, indent=2, ensure_ascii=False)}"


def to_jsonrpc_error(
    exc: BaseException,
    include_details: bool = True,
    code: Optional[int] = None,
    include_user_message: bool = True
) -> Dict[str, Any]:
    """Render an error as a JSON-RPC error object.

    Args:
        exc: The failure to render
        include_details: When False, omit ``details`` and ``doc_url`` from the data
            block (used for auth-gate and dispatch failures)
        code: JSON-RPC code to use instead of the one mapped from the error kind
        include_user_message: When False, the data block is only
            ``{type, code, request_id}``
    """
    error = classify(exc)
    if error is None:
        return {"code": JSONRPCErrorCode.INTERNAL_ERROR, "message": str(exc) or "Unknown error"}

    data: Dict[str, Any] = {
        "type": error.error_type,
        "code": error.code,
        "request_id": error.request_id,
    }
    if include_user_message:
        data["user_message"] = error.user_message
    if include_details:
        data["details"] = error.details
        data["doc_url"] = error.doc_url

    if code is None:
        code = error.jsonrpc_code
    return {"code": code, "message": error.message, "data": data}
