"""SmartMatch exception hierarchy.

All exceptions inherit from SmartMatchError and carry a three-part structure:
message (what happened), detail (technical context), suggestion (what to do next).

Only InvalidDocumentError is meant to reach end users. Backend errors and
training conflicts are caught inside the engine and turned into fallbacks.
"""


class SmartMatchError(Exception):
    """Base exception for all SmartMatch errors."""

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.detail:
            parts.append(f"Detail: {self.detail}")
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " | ".join(parts)


class DatabaseError(SmartMatchError):
    """Error related to database operations."""

    def __init__(
        self,
        message: str = "A database error occurred",
        detail: str | None = None,
        suggestion: str | None = "Check database connectivity and migrations",
    ) -> None:
        super().__init__(message, detail, suggestion)


class ValidationError(SmartMatchError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation error",
        detail: str | None = None,
        suggestion: str | None = "Check input format and required fields",
    ) -> None:
        super().__init__(message, detail, suggestion)


class InvalidDocumentError(SmartMatchError):
    """Raised when the classifier decides a document is not a solicitation.

    Carries the classifier's document type guess and rejection reason so the
    user can correct the upload.
    """

    def __init__(
        self,
        document_type: str,
        rejection_reason: str,
        message: str = "Document is not a valid RFP",
        detail: str | None = None,
        suggestion: str | None = (
            "Upload a request for proposal or quotation with scope, "
            "deliverables and submission details"
        ),
    ) -> None:
        self.document_type = document_type
        self.rejection_reason = rejection_reason
        super().__init__(
            message,
            detail or f"type={document_type}, reason={rejection_reason}",
            suggestion,
        )


class MatchResultNotFoundError(SmartMatchError):
    """Raised when feedback references a match result the user does not own."""

    def __init__(
        self,
        message: str = "Match result not found",
        detail: str | None = None,
        suggestion: str | None = "Check the match result id returned by analyze",
    ) -> None:
        super().__init__(message, detail, suggestion)


class BackendError(SmartMatchError):
    """Base class for AI backend failures. Never propagated to users."""


class BackendUnavailableError(BackendError):
    """AI backend call failed, timed out, or no backend is configured."""

    def __init__(
        self,
        message: str = "AI backend unavailable",
        detail: str | None = None,
        suggestion: str | None = "Falling back to deterministic heuristics",
    ) -> None:
        super().__init__(message, detail, suggestion)


class MalformedBackendResponseError(BackendError):
    """AI backend returned output that failed schema validation."""

    def __init__(
        self,
        message: str = "AI backend returned a malformed response",
        detail: str | None = None,
        suggestion: str | None = "Falling back to deterministic heuristics",
    ) -> None:
        super().__init__(message, detail, suggestion)


class ConcurrentTrainingConflict(SmartMatchError):
    """A training trigger arrived while a run for the same tenant was in flight."""

    def __init__(
        self,
        message: str = "Training already in progress",
        detail: str | None = None,
        suggestion: str | None = "Wait for the running training pass to finish",
    ) -> None:
        super().__init__(message, detail, suggestion)


class StaleModelError(SmartMatchError):
    """An optimistic IndustryModel write lost against a concurrent writer."""

    def __init__(
        self,
        message: str = "Industry model was modified concurrently",
        detail: str | None = None,
        suggestion: str | None = "Re-read the model and retry the update",
    ) -> None:
        super().__init__(message, detail, suggestion)


class AppendOnlyViolationError(DatabaseError):
    """Raised when code tries to update or delete an append-only record."""

    def __init__(
        self,
        message: str = "Append-only records cannot be modified",
        detail: str | None = None,
        suggestion: str | None = "Insert a new record instead",
    ) -> None:
        super().__init__(message, detail, suggestion)
