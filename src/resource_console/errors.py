"""Exception hierarchy for the resource console engine.

Every error raised by the engine derives from ``ConsoleError`` so callers
(list views, form dialogs, the CLI) can surface one user-visible message
without knowing which component failed.

Usage:
    from resource_console.errors import ConsoleError, GatewayError

    try:
        await gateway.create("/api/drugs", payload)
    except GatewayError as e:
        show_message(e.message)
"""

from typing import Any

GENERIC_FAILURE = "Request failed"


class ConsoleError(Exception):
    """Base class for all resource console errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class GatewayError(ConsoleError):
    """Raised when the backend answers with a non-success response.

    Attributes:
        message: Server-provided message when present, else a generic fallback.
        status_code: HTTP status code, or ``None`` for transport failures.
        payload: Decoded response body (if any).
    """

    def __init__(
        self,
        message: str = GENERIC_FAILURE,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message or GENERIC_FAILURE)
        self.status_code = status_code
        self.payload = payload


class AuthenticationRequired(GatewayError):
    """Raised on HTTP 401; the credential collaborator must re-authenticate."""

    pass


class ResourceNotFoundError(ConsoleError, KeyError):
    """Raised when a resource key is not registered."""

    def __str__(self) -> str:
        return self.message


class DescriptorError(ConsoleError):
    """Raised when a descriptor catalog is malformed."""

    pass


class FormStateError(ConsoleError):
    """Raised on an operation that the current form state does not allow."""

    pass


class ValidationFailed(ConsoleError):
    """Raised when a submit attempt finds invalid fields.

    Attributes:
        errors: Field name mapped to the first failing rule's message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(f"{len(errors)} field(s) invalid: {', '.join(errors)}")
        self.errors = errors


class UploadRejected(ConsoleError):
    """Raised when a file fails the acceptance gate before upload."""

    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"{file_name}: {reason}")
        self.file_name = file_name
        self.reason = reason


class InvalidTransitionError(ConsoleError):
    """Raised when a file state transition would move backwards."""

    pass


class PendingUploadError(ConsoleError):
    """Raised when a submitted attachment field still holds unfinished files."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Field '{field}' has uploads that are not finished")
        self.field = field


class SubmissionError(ConsoleError):
    """Raised when a resource hook cannot build a payload."""

    pass
