from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    MISSING_FIELD = "missing_field"
    UNCONFIGURED = "unconfigured"
    PROVIDER_ERROR = "provider_error"
    EMPTY_RESPONSE = "empty_response"
    TRANSPORT_SEND_FAILURE = "transport_send_failure"
    TRANSPORT_CLEANUP_FAILURE = "transport_cleanup_failure"
    INTERNAL_ERROR = "internal_error"


class TopPrixError(Exception):
    """Error with a closed kind and an opaque diagnostic string.

    ``body`` is the flat JSON payload returned to HTTP callers; ``detail`` is
    for logs and diagnostics only.
    """

    def __init__(self, kind: ErrorKind, body: dict, status_code: int = 500, detail: Optional[str] = None):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.body = body
        self.status_code = status_code
        self.detail = detail
