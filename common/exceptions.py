from __future__ import annotations

from typing import Any, Optional


class NeoRestError(Exception):
    """Base class for neorest exceptions."""


class InvalidReferenceError(NeoRestError):
    """Raised when a verb argument cannot be turned into a node or relationship reference."""


class AmbiguousReferenceError(InvalidReferenceError):
    """Raised when a bulk placeholder is used where a single identifier is expected."""


class BatchAlreadyCommittedError(NeoRestError):
    """Raised when a batch is used after it was committed or closed."""


class ProtocolViolationError(NeoRestError):
    """Raised when the server's batch response breaks the count/order contract."""


class TransportError(NeoRestError):
    """Raised when the request never produced an HTTP response."""


class CallbackError(NeoRestError):
    """Raised after demultiplexing when one or more result callbacks raised."""


class ServiceError(NeoRestError):

    def __init__(
        self,
        status: int,
        message: str,
        *,
        exception: Optional[str] = None,
        body: Any = None,
    ) -> None:
        self.status = status
        self.message = message
        self.exception = exception
        self.body = body
        super().__init__(f"{status}: {message}")


class NotFoundError(ServiceError):
    """404 from the service."""


class ConflictError(ServiceError):
    """409 from the service."""


_STATUS_ERRORS = {
    404: NotFoundError,
    409: ConflictError,
}


def error_for_status(status: int, body: Any) -> ServiceError:
    message = f"HTTP {status}"
    exception = None
    if isinstance(body, dict):
        message = str(body.get("message") or message)
        exception = body.get("exception")
        errors = body.get("errors")
        if not body.get("message") and isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("message"):
                message = str(first["message"])
    elif isinstance(body, str) and body:
        message = body
    cls = _STATUS_ERRORS.get(status, ServiceError)
    return cls(status, message, exception=exception, body=body)
