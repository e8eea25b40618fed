import logging
from datetime import datetime
from functools import wraps
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from enums import InterviewStatus
from errors import InterviewNotFound, PersistenceFailed
from models import Answer, Interview, Question

logger = logging.getLogger(__name__)


def _persistence(method):
    """Roll back and re-raise storage errors as PersistenceFailed."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("%s failed: %s", method.__name__, e)
            raise PersistenceFailed(details={"operation": method.__name__}) from e
    return wrapper


class InterviewRepository:
    """
    Interview, question and answer storage scoped to a single user.

    Every read filters on the owning user, so rows belonging to someone else
    behave exactly like rows that do not exist.
    """

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    def _owned(self):
        return self.db.query(Interview).filter(Interview.user_id == self.user_id)

    @_persistence
    def create_interview(self, job_role: str, difficulty: str, interview_type: str,
                         total_questions: int) -> Interview:
        interview = Interview(
            user_id=self.user_id,
            job_role=job_role,
            difficulty=difficulty,
            interview_type=interview_type,
            total_questions=total_questions,
            status=InterviewStatus.IN_PROGRESS.value,
        )
        self.db.add(interview)
        self.db.commit()
        self.db.refresh(interview)
        return interview

    @_persistence
    def get_interview(self, interview_id: str) -> Interview:
        interview = self._owned().filter(Interview.id == interview_id).first()
        if interview is None:
            raise InterviewNotFound(interview_id)
        return interview

    @_persistence
    def list_interviews(self, limit: int = 10) -> List[Interview]:
        return self._owned().order_by(Interview.created_at.desc()).limit(limit).all()

    @_persistence
    def list_questions(self, interview_id: str) -> List[Question]:
        """Questions of an owned interview in order, each with its answer loaded."""
        self.get_interview(interview_id)
        return (
            self.db.query(Question)
            .options(selectinload(Question.answer))
            .filter(Question.interview_id == interview_id)
            .order_by(Question.question_order.asc())
            .all()
        )

    @_persistence
    def create_question(self, interview_id: str, question_text: str, question_order: int) -> Question:
        self.get_interview(interview_id)
        question = Question(
            interview_id=interview_id,
            question_text=question_text,
            question_order=question_order,
        )
        self.db.add(question)
        self.db.commit()
        self.db.refresh(question)
        return question

    @_persistence
    def get_answer(self, question_id: str) -> Optional[Answer]:
        return (
            self.db.query(Answer)
            .join(Question, Answer.question_id == Question.id)
            .join(Interview, Question.interview_id == Interview.id)
            .filter(Answer.question_id == question_id, Interview.user_id == self.user_id)
            .first()
        )

    @_persistence
    def create_answer(self, question: Question, answer_text: str, feedback: str, score: float) -> Answer:
        self.get_interview(question.interview_id)
        answer = Answer(
            question_id=question.id,
            answer_text=answer_text,
            ai_feedback=feedback,
            score=score,
        )
        self.db.add(answer)
        self.db.commit()
        self.db.refresh(answer)
        return answer

    @_persistence
    def complete_interview(self, interview: Interview, overall_score: float,
                           strengths: List[str], improvements: List[str]) -> Interview:
        """Write the aggregate fields and the completed status in one commit."""
        interview.status = InterviewStatus.COMPLETED.value
        interview.overall_score = overall_score
        interview.strengths = list(strengths)
        interview.improvements = list(improvements)
        interview.completed_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(interview)
        return interview

    @_persistence
    def cancel_interview(self, interview: Interview) -> Interview:
        interview.status = InterviewStatus.CANCELLED.value
        self.db.commit()
        self.db.refresh(interview)
        return interview
