import httpx
import pytest
from sqlalchemy.exc import OperationalError

from auth import UserSession
from enums import Difficulty, GenerationErrorKind, InterviewStatus, InterviewType, SessionState
from errors import (
    GenerationFailed,
    InterviewAlreadyCompleted,
    InterviewClosed,
    InterviewNotCompleted,
    InterviewNotFound,
    InvalidStateTransition,
    PersistenceFailed,
    ValidationFailed,
)
from interview_controller import InterviewSessionController
from models import Answer, Question
from question_service import clean_question_text
from schemas import InterviewCreate

from conftest import make_user

pytestmark = pytest.mark.anyio


@pytest.fixture
def controller(user_session, db, generation):
    return InterviewSessionController(user_session, db, generation)


def start(controller, total_questions=3, **overrides):
    config = InterviewCreate(
        job_role=overrides.pop("job_role", "Software Engineer"),
        difficulty=overrides.pop("difficulty", Difficulty.MID),
        interview_type=overrides.pop("interview_type", InterviewType.TECHNICAL),
        total_questions=total_questions,
    )
    return controller.start_interview(config)


async def ask_and_answer(controller, gateway, interview_id, question, score, answer="My answer"):
    gateway.reply(question)
    asked = await controller.generate_next_question(interview_id)
    gateway.reply_json({"score": score, "feedback": f"Scored {score}"})
    return await controller.submit_answer(interview_id, asked.id, answer)


def question_orders(db, interview_id):
    rows = db.query(Question).filter(Question.interview_id == interview_id).order_by(Question.question_order).all()
    return [q.question_order for q in rows]


async def test_full_interview_with_service_feedback(controller, gateway, db):
    interview = start(controller)

    first = await ask_and_answer(controller, gateway, interview.id, "Q1?", 7)
    assert first.next_state == SessionState.AWAITING_QUESTION
    await ask_and_answer(controller, gateway, interview.id, "Q2?", 9)
    last = await ask_and_answer(controller, gateway, interview.id, "Q3?", 6)
    assert last.next_state == SessionState.EVALUATING
    assert last.answered_count == 3

    gateway.reply_json({"overallScore": 7.8, "strengths": ["Depth"], "improvements": ["Brevity"]})
    completed = await controller.finalize(interview.id)

    assert completed.status == InterviewStatus.COMPLETED.value
    assert completed.overall_score == 7.8
    assert completed.strengths == ["Depth"]
    assert completed.improvements == ["Brevity"]
    assert completed.completed_at is not None
    assert question_orders(db, interview.id) == [1, 2, 3]
    assert db.query(Answer).count() == 3


async def test_full_interview_with_malformed_feedback(controller, gateway):
    interview = start(controller)
    for text, score in (("Q1?", 7), ("Q2?", 9), ("Q3?", 6)):
        await ask_and_answer(controller, gateway, interview.id, text, score)

    gateway.reply("You did well overall, keep practicing.")
    completed = await controller.finalize(interview.id)

    assert completed.overall_score == 7.3
    assert completed.strengths == []
    assert completed.improvements == []

    sent = gateway.user_prompt()
    assert "Q3: Q3?" in sent and "Score: 6/10" in sent


async def test_question_generation_sends_previous_questions(controller, gateway):
    interview = start(controller)
    await ask_and_answer(controller, gateway, interview.id, "Describe a REST API.", 8)

    gateway.reply("  \"How would you design a rate limiter?\"\n")
    question = await controller.generate_next_question(interview.id)

    assert question.question_text == "How would you design a rate limiter?"
    assert question.question_order == 2
    prompt = gateway.user_prompt()
    assert "Generate question 2 of 3" in prompt
    assert "1. Describe a REST API." in prompt


async def test_malformed_evaluation_persists_neutral_score(controller, gateway, db):
    interview = start(controller)
    gateway.reply("Q1?")
    question = await controller.generate_next_question(interview.id)

    raw = "Decent answer, though it lacked concrete examples."
    gateway.reply(raw)
    outcome = await controller.submit_answer(interview.id, question.id, "I would use caching.")

    answer = db.query(Answer).filter(Answer.question_id == question.id).one()
    assert answer.score == 5
    assert answer.ai_feedback == raw
    assert outcome.turn.feedback == raw


async def test_resume_with_no_questions(controller):
    interview = start(controller)
    snapshot = controller.resume(interview.id)
    assert snapshot.state == SessionState.AWAITING_QUESTION
    assert snapshot.history == []
    assert snapshot.question_number == 1


async def test_resume_surfaces_unanswered_question(controller, gateway):
    interview = start(controller)
    await ask_and_answer(controller, gateway, interview.id, "Q1?", 7)
    gateway.reply("Q2?")
    pending = await controller.generate_next_question(interview.id)

    snapshot = controller.resume(interview.id)
    assert snapshot.state == SessionState.AWAITING_ANSWER
    assert snapshot.current_question.id == pending.id
    assert [t.question for t in snapshot.history] == ["Q1?"]
    assert snapshot.question_number == 2


async def test_resume_after_answer_awaits_next_question(controller, gateway):
    interview = start(controller)
    await ask_and_answer(controller, gateway, interview.id, "Q1?", 7)
    await ask_and_answer(controller, gateway, interview.id, "Q2?", 8)

    snapshot = controller.resume(interview.id)
    assert snapshot.state == SessionState.AWAITING_QUESTION
    assert len(snapshot.history) == 2
    assert snapshot.question_number == 3


async def test_interrupted_finalize_resumes_in_evaluating(controller, gateway):
    interview = start(controller, total_questions=2)
    await ask_and_answer(controller, gateway, interview.id, "Q1?", 8)
    await ask_and_answer(controller, gateway, interview.id, "Q2?", 6)

    gateway.fail(500)
    with pytest.raises(GenerationFailed):
        await controller.finalize(interview.id)

    snapshot = controller.resume(interview.id)
    assert snapshot.state == SessionState.EVALUATING
    assert snapshot.interview.status == InterviewStatus.IN_PROGRESS.value
    assert snapshot.interview.overall_score is None

    gateway.reply("not json")
    completed = await controller.finalize(interview.id)
    assert completed.overall_score == 7.0
    # The retry asked for feedback only; nothing was re-asked or re-scored
    assert len(gateway.requests) == 6


async def test_resume_completed_interview_is_rejected(controller, gateway):
    interview = start(controller, total_questions=1)
    await ask_and_answer(controller, gateway, interview.id, "Q1?", 9)
    gateway.reply("fine")
    await controller.finalize(interview.id)

    with pytest.raises(InterviewAlreadyCompleted):
        controller.resume(interview.id)


async def test_question_retry_after_failure_keeps_order_contiguous(controller, gateway, db):
    interview = start(controller)
    await ask_and_answer(controller, gateway, interview.id, "Q1?", 7)

    gateway.raise_error(httpx.ConnectError("network down"))
    with pytest.raises(GenerationFailed):
        await controller.generate_next_question(interview.id)
    assert question_orders(db, interview.id) == [1]

    gateway.reply("Q2?")
    question = await controller.generate_next_question(interview.id)
    assert question.question_order == 2
    assert question_orders(db, interview.id) == [1, 2]


async def test_repeated_next_question_returns_pending_question(controller, gateway, db):
    interview = start(controller)
    gateway.reply("Q1?")
    first = await controller.generate_next_question(interview.id)
    again = await controller.generate_next_question(interview.id)

    assert again.id == first.id
    assert question_orders(db, interview.id) == [1]
    assert len(gateway.requests) == 1


async def test_failed_evaluation_leaves_answer_unsaved(controller, gateway, db):
    interview = start(controller)
    gateway.reply("Q1?")
    question = await controller.generate_next_question(interview.id)

    gateway.fail(429)
    with pytest.raises(GenerationFailed) as info:
        await controller.submit_answer(interview.id, question.id, "An answer")
    assert info.value.kind == GenerationErrorKind.RATE_LIMITED
    assert db.query(Answer).count() == 0
    assert controller.resume(interview.id).state == SessionState.AWAITING_ANSWER

    gateway.reply_json({"score": 8, "feedback": "Good"})
    outcome = await controller.submit_answer(interview.id, question.id, "An answer")
    assert outcome.turn.score == 8


async def test_empty_answer_is_rejected_before_any_call(controller, gateway):
    interview = start(controller)
    gateway.reply("Q1?")
    question = await controller.generate_next_question(interview.id)

    with pytest.raises(ValidationFailed):
        await controller.submit_answer(interview.id, question.id, "   \n ")
    assert len(gateway.requests) == 1


async def test_answer_for_wrong_question_is_rejected(controller, gateway):
    interview = start(controller)
    await ask_and_answer(controller, gateway, interview.id, "Q1?", 7)
    answered_id = controller.resume(interview.id).history[0].question_id

    with pytest.raises(InvalidStateTransition):
        await controller.submit_answer(interview.id, answered_id, "again")


async def test_cannot_ask_beyond_total_or_finalize_early(controller, gateway):
    interview = start(controller, total_questions=1)
    with pytest.raises(InvalidStateTransition):
        await controller.finalize(interview.id)

    await ask_and_answer(controller, gateway, interview.id, "Q1?", 7)
    with pytest.raises(InvalidStateTransition):
        await controller.generate_next_question(interview.id)


async def test_start_interview_validation(controller):
    with pytest.raises(ValidationFailed):
        start(controller, job_role="   ")
    with pytest.raises(ValidationFailed):
        start(controller, total_questions=0)

    interview = start(controller, job_role="  UX Designer ")
    assert interview.job_role == "UX Designer"
    assert interview.status == InterviewStatus.IN_PROGRESS.value
    assert interview.overall_score is None and interview.completed_at is None


async def test_advance_walks_the_workflow(controller, gateway):
    interview = start(controller, total_questions=1)

    gateway.reply("Q1?")
    outcome = await controller.advance(interview.id)
    assert outcome.state == SessionState.AWAITING_ANSWER
    question = outcome.current_question

    same = await controller.advance(interview.id)
    assert same.current_question.id == question.id

    gateway.reply_json({"score": 9, "feedback": "Great"})
    await controller.submit_answer(interview.id, question.id, "Answer")

    gateway.reply_json({"overallScore": 9, "strengths": ["Clarity"], "improvements": []})
    done = await controller.advance(interview.id)
    assert done.state == SessionState.COMPLETED
    assert done.interview.overall_score == 9


async def test_cancel_is_terminal(controller, gateway):
    interview = start(controller)
    cancelled = controller.cancel(interview.id)
    assert cancelled.status == InterviewStatus.CANCELLED.value
    assert cancelled.overall_score is None

    with pytest.raises(InterviewClosed):
        controller.resume(interview.id)
    with pytest.raises(InterviewClosed):
        await controller.generate_next_question(interview.id)


async def test_results_require_completion(controller, gateway):
    interview = start(controller, total_questions=1)
    with pytest.raises(InterviewNotCompleted):
        controller.results(interview.id)

    await ask_and_answer(controller, gateway, interview.id, "Q1?", 4, answer="Short answer")
    gateway.reply("unstructured")
    await controller.finalize(interview.id)

    completed, turns = controller.results(interview.id)
    assert completed.overall_score == 4.0
    assert [(t.question, t.answer, t.score) for t in turns] == [("Q1?", "Short answer", 4)]


async def test_interviews_of_other_users_are_invisible(controller, gateway, db, generation):
    interview = start(controller)
    await ask_and_answer(controller, gateway, interview.id, "Q1?", 7)
    question_id = controller.resume(interview.id).history[0].question_id
    assert controller.repository.get_answer(question_id).score == 7

    other = make_user(db, email="other@example.com")
    intruder = InterviewSessionController(
        UserSession(user_id=other.id, email=other.email, token_id="other-token"), db, generation
    )
    with pytest.raises(InterviewNotFound):
        intruder.resume(interview.id)
    with pytest.raises(InterviewNotFound):
        intruder.cancel(interview.id)
    assert intruder.repository.list_interviews() == []
    assert intruder.repository.get_answer(question_id) is None


def test_clean_question_text():
    assert clean_question_text('  "What is a closure?"  ') == "What is a closure?"
    assert clean_question_text("\n") == ""


async def test_failed_save_during_finalize_leaves_interview_retryable(controller, gateway, db, monkeypatch):
    interview = start(controller, total_questions=2)
    await ask_and_answer(controller, gateway, interview.id, "Q1?", 8)
    await ask_and_answer(controller, gateway, interview.id, "Q2?", 6)

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    gateway.reply_json({"overallScore": 8, "strengths": ["Depth"], "improvements": []})
    with pytest.raises(PersistenceFailed) as info:
        await controller.finalize(interview.id)
    assert info.value.retryable
    monkeypatch.undo()

    snapshot = controller.resume(interview.id)
    assert snapshot.state == SessionState.EVALUATING
    assert snapshot.interview.status == InterviewStatus.IN_PROGRESS.value
    assert snapshot.interview.overall_score is None
    assert snapshot.interview.strengths is None
    assert snapshot.interview.completed_at is None
    assert [t.score for t in snapshot.history] == [8, 6]

    gateway.reply_json({"overallScore": 8, "strengths": ["Depth"], "improvements": []})
    completed = await controller.finalize(interview.id)
    assert completed.status == InterviewStatus.COMPLETED.value
    assert completed.overall_score == 8
