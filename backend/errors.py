from typing import Optional, Dict, Any

from enums import GenerationErrorKind


class InterviewError(Exception):
    """
    Base class for every failure the interview workflow surfaces to callers.

    Attributes:
        code: short machine-readable identifier
        message: user-visible message
        status_code: HTTP status the API answers with
        retryable: whether repeating the same step may succeed
        details: extra debugging information
    """
    status_code = 400
    retryable = False

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


class ValidationFailed(InterviewError):
    """Input rejected before any external call."""
    status_code = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="validation_failed", message=message, details=details)


_GENERATION_STATUS = {
    GenerationErrorKind.RATE_LIMITED: 429,
    GenerationErrorKind.QUOTA_EXHAUSTED: 402,
    GenerationErrorKind.GENERIC: 502,
}


class GenerationFailed(InterviewError):
    """The generation gateway was unreachable, errored, or returned nothing usable."""

    def __init__(
        self,
        message: str,
        kind: GenerationErrorKind = GenerationErrorKind.GENERIC,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.kind = kind
        super().__init__(code=f"generation_{kind.value}", message=message, details=details)

    @property
    def status_code(self) -> int:
        return _GENERATION_STATUS[self.kind]

    @property
    def retryable(self) -> bool:
        return self.kind != GenerationErrorKind.QUOTA_EXHAUSTED


class PersistenceFailed(InterviewError):
    status_code = 503
    retryable = True

    def __init__(self, message: str = "Failed to save your progress. Please try again.",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code="persistence_failed", message=message, details=details)


class InterviewNotFound(InterviewError):
    status_code = 404

    def __init__(self, interview_id: str):
        super().__init__(code="interview_not_found", message="Interview not found",
                         details={"interview_id": interview_id})


class InterviewAlreadyCompleted(InterviewError):
    """Raised on resume of a completed interview; the caller shows results instead."""
    status_code = 409

    def __init__(self, interview_id: str):
        super().__init__(code="interview_completed", message="Interview already completed",
                         details={"interview_id": interview_id})


class InterviewNotCompleted(InterviewError):
    status_code = 409

    def __init__(self, interview_id: str):
        super().__init__(code="interview_not_completed", message="Interview not completed yet",
                         details={"interview_id": interview_id})


class InterviewClosed(InterviewError):
    status_code = 409

    def __init__(self, interview_id: str):
        super().__init__(code="interview_cancelled", message="Interview was cancelled",
                         details={"interview_id": interview_id})


class InvalidStateTransition(InterviewError):
    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="invalid_state", message=message, details=details)
