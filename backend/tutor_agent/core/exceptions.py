"""
Custom exception classes for unified error handling.
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse


class AppBaseError(Exception):
    """Base exception for all application errors."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ValidationError(AppBaseError):
    """Raised for missing or malformed input. Nothing has been written yet."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(AppBaseError):
    """Raised when the caller does not own the agent or chat they address."""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(message=message)


class NotFoundError(AppBaseError):
    status_code = status.HTTP_404_NOT_FOUND


class AgentNotFoundError(NotFoundError):
    def __init__(self, agent_id: str):
        super().__init__(message="Agent not found", detail=f"agent_id={agent_id}")


class ChatNotFoundError(NotFoundError):
    def __init__(self, chat_id: str):
        super().__init__(message="Chat not found", detail=f"chat_id={chat_id}")


class DocumentNotFoundError(NotFoundError):
    def __init__(self, document_id: str):
        super().__init__(message="Document not found", detail=f"document_id={document_id}")


class ProviderError(AppBaseError):
    """Raised when an embedding, generation or vector store call fails.

    ``transient`` marks failures worth retrying (timeouts, rate limits,
    5xx). Permanent failures (bad input, auth) are not retried.
    """
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, provider: str, original_error: str, transient: bool = False):
        self.provider = provider
        self.transient = transient
        super().__init__(
            message=f"Provider '{provider}' failed",
            detail=original_error,
        )


class GenerationFailedError(ProviderError):
    """Raised when the chat model fails to produce an answer."""

    def __init__(self, original_error: str, transient: bool = False):
        super().__init__("generation", original_error, transient=transient)


class PipelineError(AppBaseError):
    """Raised when an ingestion step fails.

    Carries the failing step, the underlying cause and, when the document
    record was already written, its id.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, step: str, cause: BaseException, document_id: str | None = None):
        self.step = step
        self.cause = cause
        self.document_id = document_id
        reason = str(cause)
        if isinstance(cause, AppBaseError):
            reason = f"{cause.message}: {cause.detail}" if cause.detail else cause.message
        super().__init__(
            message=f"Ingestion failed at step '{step}': {reason}",
            detail=type(cause).__name__,
        )


# ── Utility: convert to HTTPException ────────────────────

def app_error_to_http(error: AppBaseError, status_code: int | None = None) -> HTTPException:
    """Convert an AppBaseError to an HTTPException with consistent JSON body."""
    return HTTPException(
        status_code=status_code or error.status_code,
        detail={
            "error": error.message,
            "detail": error.detail,
            "type": type(error).__name__,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every AppBaseError raised inside a route the same way."""

    @app.exception_handler(AppBaseError)
    async def handle_app_error(request: Request, error: AppBaseError) -> JSONResponse:
        http_error = app_error_to_http(error)
        return JSONResponse(status_code=http_error.status_code, content={"detail": http_error.detail})
