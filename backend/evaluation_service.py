import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from ai_gateway import GenerationService
from enums import GenerationTask
from models import Interview
from schemas import GenerationRequest, QARecord

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 5.0
MIN_SCORE = 1.0
MAX_SCORE = 10.0


@dataclass
class Evaluation:
    """Score and feedback for a single answer."""
    feedback: str
    score: float = DEFAULT_SCORE


@dataclass
class AggregateFeedback:
    overall_score: float
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    summary: Optional[str] = None


def _strip_code_fence(content: str) -> str:
    # Models like to wrap JSON in markdown code blocks
    if "```json" in content:
        return content.split("```json")[1].split("```")[0].strip()
    if content.count("```") >= 2:
        return content.split("```")[1].split("```")[0].strip()
    return content.strip()


def _load_object(raw: str) -> Optional[dict]:
    if not isinstance(raw, str):
        return None
    try:
        parsed = json.loads(raw.strip())
    except json.JSONDecodeError:
        # Well-formed JSON may itself mention ``` in its text, so fences are only tried second
        try:
            parsed = json.loads(_strip_code_fence(raw))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def _as_score(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score or score == 0:  # NaN, or a zero the model used for "no score"
        return None
    return min(MAX_SCORE, max(MIN_SCORE, score))


def _as_string_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def round_score(value: float) -> float:
    """Round half-up to one decimal place."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def mean_score(scores: Sequence[Optional[float]]) -> float:
    values = [DEFAULT_SCORE if s is None else float(s) for s in scores]
    if not values:
        return DEFAULT_SCORE
    return round_score(sum(values) / len(values))


def parse_evaluation(raw: str) -> Evaluation:
    """Read an evaluate_answer response, falling back to score 5 and the raw text."""
    parsed = _load_object(raw)
    if parsed is None:
        logger.warning("Evaluation response was not JSON, using raw text as feedback")
        return Evaluation(feedback=raw, score=DEFAULT_SCORE)

    feedback = parsed.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        feedback = raw
    score = _as_score(parsed.get("score"))
    return Evaluation(feedback=feedback, score=DEFAULT_SCORE if score is None else score)


def parse_aggregate_feedback(raw: str, scores: Sequence[Optional[float]]) -> AggregateFeedback:
    """Read a generate_feedback response; the per-turn mean stands in for a missing overall score."""
    parsed = _load_object(raw)
    if parsed is None:
        logger.warning("Feedback response was not JSON, using mean of %d turn scores", len(scores))
        return AggregateFeedback(overall_score=mean_score(scores))

    overall = _as_score(parsed.get("overallScore"))
    summary = parsed.get("summary")
    return AggregateFeedback(
        overall_score=mean_score(scores) if overall is None else round_score(overall),
        strengths=_as_string_list(parsed.get("strengths")),
        improvements=_as_string_list(parsed.get("improvements")),
        summary=summary if isinstance(summary, str) else None,
    )


class EvaluationService:
    def __init__(self, generation: GenerationService):
        self.generation = generation

    async def evaluate_answer(self, interview: Interview, question: str, answer: str) -> Evaluation:
        """Evaluate an answer and provide score and feedback"""
        request = GenerationRequest(
            type=GenerationTask.EVALUATE_ANSWER,
            job_role=interview.job_role,
            difficulty=interview.difficulty,
            interview_type=interview.interview_type,
            current_question=question,
            user_answer=answer,
        )
        raw = await self.generation.generate(request)
        return parse_evaluation(raw)

    async def generate_feedback(self, interview: Interview, history: List[QARecord]) -> AggregateFeedback:
        """Generate the final overall score, strengths and improvements"""
        request = GenerationRequest(
            type=GenerationTask.GENERATE_FEEDBACK,
            job_role=interview.job_role,
            difficulty=interview.difficulty,
            interview_type=interview.interview_type,
            all_qa=history,
        )
        raw = await self.generation.generate(request)
        return parse_aggregate_feedback(raw, [qa.score for qa in history])
