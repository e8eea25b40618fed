"""
Turn-taking workflow for a single interview.

The controller never trusts in-memory state between calls. Every operation
starts by rebuilding a ``SessionSnapshot`` from the persisted questions and
answers, checks that the requested step is legal in that state, and persists
its result before reporting the next state. A reload or a retry after any
failure therefore lands on the correct step.

    initializing -> awaiting_question -> awaiting_answer -> evaluating
                         ^                                    |
                         +---------- (more questions) --------+
                                                              v
                                                    (finalize) completed
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from ai_gateway import GenerationService
from auth import UserSession
from enums import InterviewStatus, SessionState
from errors import (
    InterviewAlreadyCompleted,
    InterviewClosed,
    InterviewNotCompleted,
    InvalidStateTransition,
    ValidationFailed,
)
from evaluation_service import DEFAULT_SCORE, EvaluationService
from models import Interview, Question
from question_service import QuestionService
from repository import InterviewRepository
from schemas import InterviewCreate, QARecord

logger = logging.getLogger(__name__)

MAX_QUESTIONS = 20


@dataclass
class Turn:
    question_id: str
    question: str
    answer: str
    feedback: Optional[str] = None
    score: Optional[float] = None


@dataclass
class SessionSnapshot:
    interview: Interview
    state: SessionState
    questions: List[Question] = field(default_factory=list)
    history: List[Turn] = field(default_factory=list)
    current_question: Optional[Question] = None

    @property
    def question_number(self) -> int:
        """1-based number of the question being asked, or about to be asked."""
        if self.current_question is not None:
            return self.current_question.question_order
        return min(len(self.history) + 1, self.interview.total_questions)


@dataclass
class AnswerOutcome:
    turn: Turn
    next_state: SessionState
    answered_count: int
    total_questions: int


@dataclass
class AdvanceOutcome:
    state: SessionState
    interview: Interview
    current_question: Optional[Question] = None


def _turn(question: Question) -> Turn:
    answer = question.answer
    return Turn(
        question_id=question.id,
        question=question.question_text,
        answer=answer.answer_text,
        feedback=answer.ai_feedback,
        score=answer.score,
    )


def derive_state(interview: Interview, questions: List[Question]) -> SessionSnapshot:
    """Work out where an in-progress interview stands from its persisted questions."""
    if not questions:
        return SessionSnapshot(interview=interview, state=SessionState.AWAITING_QUESTION)

    last = questions[-1]
    if last.answer is None:
        # The unanswered question is surfaced again and kept out of history
        return SessionSnapshot(
            interview=interview,
            state=SessionState.AWAITING_ANSWER,
            questions=questions,
            history=[_turn(q) for q in questions[:-1] if q.answer is not None],
            current_question=last,
        )

    history = [_turn(q) for q in questions if q.answer is not None]
    if len(history) < interview.total_questions:
        state = SessionState.AWAITING_QUESTION
    else:
        state = SessionState.EVALUATING
    return SessionSnapshot(interview=interview, state=state, questions=questions, history=history)


class InterviewSessionController:
    def __init__(self, session: UserSession, db: Session, generation: GenerationService):
        self.session = session
        self.repository = InterviewRepository(db, session.user_id)
        self.questions = QuestionService(generation)
        self.evaluations = EvaluationService(generation)

    def start_interview(self, config: InterviewCreate) -> Interview:
        job_role = (config.job_role or "").strip()
        if not job_role:
            raise ValidationFailed("Please select a role", details={"field": "job_role"})
        if not 1 <= config.total_questions <= MAX_QUESTIONS:
            raise ValidationFailed(
                f"Question count must be between 1 and {MAX_QUESTIONS}",
                details={"field": "total_questions"},
            )

        interview = self.repository.create_interview(
            job_role=job_role,
            difficulty=config.difficulty.value,
            interview_type=config.interview_type.value,
            total_questions=config.total_questions,
        )
        logger.info("User %s started interview %s (%s, %d questions)",
                    self.session.user_id, interview.id, job_role, interview.total_questions)
        return interview

    def resume(self, interview_id: str) -> SessionSnapshot:
        interview = self.repository.get_interview(interview_id)
        if interview.status == InterviewStatus.COMPLETED.value:
            raise InterviewAlreadyCompleted(interview_id)
        if interview.status == InterviewStatus.CANCELLED.value:
            raise InterviewClosed(interview_id)
        return derive_state(interview, self.repository.list_questions(interview_id))

    async def generate_next_question(self, interview_id: str) -> Question:
        snapshot = self.resume(interview_id)
        if snapshot.state == SessionState.AWAITING_ANSWER:
            # A question is already waiting; hand it back rather than asking again
            return snapshot.current_question
        if snapshot.state != SessionState.AWAITING_QUESTION:
            raise InvalidStateTransition(
                "All questions have been answered",
                details={"state": snapshot.state.value},
            )

        previous = [q.question_text for q in snapshot.questions]
        question_text = await self.questions.generate_question(snapshot.interview, previous)
        question = self.repository.create_question(
            interview_id=interview_id,
            question_text=question_text,
            question_order=len(snapshot.questions) + 1,
        )
        logger.info("Interview %s: asked question %d/%d", interview_id,
                    question.question_order, snapshot.interview.total_questions)
        return question

    async def submit_answer(self, interview_id: str, question_id: str, answer_text: str) -> AnswerOutcome:
        if not (answer_text or "").strip():
            raise ValidationFailed("Please enter an answer", details={"field": "answer_text"})

        snapshot = self.resume(interview_id)
        current = snapshot.current_question
        if snapshot.state != SessionState.AWAITING_ANSWER or current.id != question_id:
            raise InvalidStateTransition(
                "This question is not awaiting an answer",
                details={"state": snapshot.state.value, "question_id": question_id},
            )

        evaluation = await self.evaluations.evaluate_answer(snapshot.interview, current.question_text, answer_text)
        answer = self.repository.create_answer(current, answer_text, evaluation.feedback, evaluation.score)

        turn = Turn(
            question_id=current.id,
            question=current.question_text,
            answer=answer.answer_text,
            feedback=answer.ai_feedback,
            score=answer.score,
        )
        answered_count = len(snapshot.history) + 1
        total = snapshot.interview.total_questions
        next_state = SessionState.EVALUATING if answered_count >= total else SessionState.AWAITING_QUESTION
        logger.info("Interview %s: answer %d/%d scored %s", interview_id, answered_count, total, answer.score)
        return AnswerOutcome(turn=turn, next_state=next_state,
                             answered_count=answered_count, total_questions=total)

    async def finalize(self, interview_id: str) -> Interview:
        snapshot = self.resume(interview_id)
        if snapshot.state != SessionState.EVALUATING:
            raise InvalidStateTransition(
                "Interview still has unanswered questions",
                details={"state": snapshot.state.value},
            )

        history = [
            QARecord(
                question=turn.question,
                answer=turn.answer,
                score=DEFAULT_SCORE if turn.score is None else turn.score,
            )
            for turn in snapshot.history
        ]
        feedback = await self.evaluations.generate_feedback(snapshot.interview, history)
        interview = self.repository.complete_interview(
            snapshot.interview,
            overall_score=feedback.overall_score,
            strengths=feedback.strengths,
            improvements=feedback.improvements,
        )
        logger.info("Interview %s completed with overall score %s", interview_id, interview.overall_score)
        return interview

    async def advance(self, interview_id: str) -> AdvanceOutcome:
        """Take whichever step the interview is waiting on, short of answering."""
        snapshot = self.resume(interview_id)
        if snapshot.state == SessionState.AWAITING_ANSWER:
            return AdvanceOutcome(state=snapshot.state, interview=snapshot.interview,
                                  current_question=snapshot.current_question)
        if snapshot.state == SessionState.AWAITING_QUESTION:
            question = await self.generate_next_question(interview_id)
            return AdvanceOutcome(state=SessionState.AWAITING_ANSWER, interview=snapshot.interview,
                                  current_question=question)
        interview = await self.finalize(interview_id)
        return AdvanceOutcome(state=SessionState.COMPLETED, interview=interview)

    def cancel(self, interview_id: str) -> Interview:
        interview = self.repository.get_interview(interview_id)
        if interview.status == InterviewStatus.COMPLETED.value:
            raise InterviewAlreadyCompleted(interview_id)
        if interview.status == InterviewStatus.CANCELLED.value:
            return interview
        logger.info("Interview %s cancelled", interview_id)
        return self.repository.cancel_interview(interview)

    def results(self, interview_id: str):
        interview = self.repository.get_interview(interview_id)
        if interview.status != InterviewStatus.COMPLETED.value:
            raise InterviewNotCompleted(interview_id)
        turns = [_turn(q) for q in self.repository.list_questions(interview_id) if q.answer is not None]
        return interview, turns
