"""Error taxonomy and the FastAPI handlers that render it."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

log = structlog.get_logger()


class InboxError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status_code = 500
    error = "InternalServerError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_content(self) -> dict:
        return {"error": self.error, "message": self.message}


class EventNotFound(InboxError):
    status_code = 404
    error = "Not found"

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id

    def to_content(self) -> dict:
        return {"error": self.error, "message": self.message, "id": self.event_id}


class DuplicateEventId(InboxError):
    status_code = 409
    error = "DuplicateKey"

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} already exists")
        self.event_id = event_id


class PayloadTooLarge(InboxError):
    status_code = 413
    error = "PayloadTooLarge"

    def __init__(self, max_size: int, received_size: int):
        super().__init__(f"Request payload exceeds maximum size of {max_size} bytes")
        self.max_size = max_size
        self.received_size = received_size

    def to_content(self) -> dict:
        return {
            "error": self.error,
            "message": self.message,
            "max_size": self.max_size,
            "received_size": self.received_size,
        }


class StorageFailure(InboxError):
    """Any backend I/O or constraint error; message is the underlying one."""
    status_code = 500
    error = "StorageFailure"


class ValidationFailure(InboxError):
    status_code = 400
    error = "ValidationFailure"


async def inbox_error_handler(request: Request, exc: InboxError) -> JSONResponse:
    correlation_id = getattr(request.state, "correlation_id", None)
    log_method = log.error if exc.status_code >= 500 else log.warning
    log_method(
        "http.inbox_error",
        error=exc.error,
        message=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
    )
    content = exc.to_content()
    content["correlation_id"] = correlation_id
    return JSONResponse(status_code=exc.status_code, content=content)


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(InboxError, inbox_error_handler)
