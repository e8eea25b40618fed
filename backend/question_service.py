import logging
from typing import List

from ai_gateway import GenerationService
from enums import GenerationTask
from errors import GenerationFailed
from models import Interview
from schemas import GenerationRequest

logger = logging.getLogger(__name__)


def clean_question_text(raw: str) -> str:
    """Strip whitespace and one pair of wrapping quotes from a generated question."""
    text = (raw or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        text = text[1:-1].strip()
    return text


class QuestionService:
    def __init__(self, generation: GenerationService):
        self.generation = generation

    async def generate_question(self, interview: Interview, previous_questions: List[str]) -> str:
        """Ask the gateway for the next question of an interview.

        The full list of previously asked questions is sent along so the model
        can avoid repeating itself.
        """
        question_number = len(previous_questions) + 1
        request = GenerationRequest(
            type=GenerationTask.GENERATE_QUESTION,
            job_role=interview.job_role,
            difficulty=interview.difficulty,
            interview_type=interview.interview_type,
            question_number=question_number,
            total_questions=interview.total_questions,
            previous_questions=list(previous_questions),
        )
        raw = await self.generation.generate(request)

        question_text = clean_question_text(raw)
        if not question_text:
            logger.warning("Empty question generated for interview %s", interview.id)
            raise GenerationFailed("Failed to generate question. Please try again.",
                                   details={"reason": "empty_question"})
        return question_text
