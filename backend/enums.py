from enum import Enum


class Difficulty(str, Enum):
    JUNIOR = "junior"
    MID = "mid"
    SENIOR = "senior"


class InterviewType(str, Enum):
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    CASE_STUDY = "case_study"


class InterviewStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SessionState(str, Enum):
    """Where an interview session stands, derived from persisted rows."""
    INITIALIZING = "initializing"
    AWAITING_QUESTION = "awaiting_question"
    AWAITING_ANSWER = "awaiting_answer"
    EVALUATING = "evaluating"
    FINALIZING = "finalizing"
    COMPLETED = "completed"


class GenerationTask(str, Enum):
    GENERATE_QUESTION = "generate_question"
    EVALUATE_ANSWER = "evaluate_answer"
    GENERATE_FEEDBACK = "generate_feedback"


class GenerationErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    QUOTA_EXHAUSTED = "quota_exhausted"
    GENERIC = "generic"
