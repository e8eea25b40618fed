import logging

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ai_gateway import GenerationService
from auth import (
    UserSession,
    create_access_token,
    get_password_hash,
    is_revoked,
    revoke_session,
    verify_password,
    verify_token,
)
from config import settings
from dashboard import build_dashboard_stats
from database import Base, engine, get_db
from errors import GenerationFailed, InterviewAlreadyCompleted, InterviewError
from interview_controller import InterviewSessionController
from logging_config import setup_logging
from models import User
from schemas import (
    AdvanceResult,
    AnswerResult,
    AnswerSubmit,
    DashboardOut,
    GenerationRequest,
    InterviewCreate,
    InterviewOut,
    QATurn,
    QuestionOut,
    ResultsOut,
    SessionOut,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserOut,
)

setup_logging()
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="AI Mock Interview API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBearer()

generation_service = GenerationService()


@app.exception_handler(InterviewError)
async def interview_error_handler(request: Request, exc: InterviewError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
    )


# Dependencies
def get_generation_service() -> GenerationService:
    return generation_service


def get_current_session(credentials: HTTPAuthorizationCredentials = Depends(security), db: Session = Depends(get_db)) -> UserSession:
    payload = verify_token(credentials.credentials)
    if payload is None or not payload.get("jti"):
        raise HTTPException(status_code=401, detail="Invalid token")
    if is_revoked(db, payload["jti"]):
        raise HTTPException(status_code=401, detail="Session has ended")
    user = db.query(User).filter(User.email == payload.get("sub")).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return UserSession(user_id=user.id, email=user.email, token_id=payload["jti"])


def get_controller(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    generation: GenerationService = Depends(get_generation_service),
) -> InterviewSessionController:
    return InterviewSessionController(session, db, generation)


def _question_out(question, total_questions: int) -> QuestionOut:
    return QuestionOut(
        question_id=question.id,
        question=question.question_text,
        question_number=question.question_order,
        total_questions=total_questions,
    )


def _qa_turn(turn) -> QATurn:
    return QATurn(
        question_id=turn.question_id,
        question=turn.question,
        answer=turn.answer,
        feedback=turn.feedback,
        score=turn.score,
    )


def _token_response(user: User) -> TokenResponse:
    token = create_access_token({"sub": user.email})
    return TokenResponse(access_token=token, user=UserOut.model_validate(user))


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "ok"}


@app.post("/api/auth/register", response_model=TokenResponse)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    existing_user = db.query(User).filter(User.email == user_data.email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=user_data.email,
        password_hash=get_password_hash(user_data.password),
        full_name=user_data.full_name.strip()
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return _token_response(user)


@app.post("/api/auth/login", response_model=TokenResponse)
def login(user_data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == user_data.email).first()
    if not user or not verify_password(user_data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _token_response(user)


@app.post("/api/auth/logout")
def logout(session: UserSession = Depends(get_current_session), db: Session = Depends(get_db)):
    revoke_session(db, session)
    return {"message": "Signed out"}


@app.get("/api/auth/me", response_model=UserOut)
def me(session: UserSession = Depends(get_current_session), db: Session = Depends(get_db)):
    return db.query(User).filter(User.id == session.user_id).first()


@app.post("/api/interviews", response_model=InterviewOut, status_code=201)
def start_interview(interview_data: InterviewCreate, controller: InterviewSessionController = Depends(get_controller)):
    """Start a new interview"""
    return controller.start_interview(interview_data)


@app.get("/api/interviews", response_model=DashboardOut)
def list_interviews(controller: InterviewSessionController = Depends(get_controller)):
    """Recent interviews with dashboard stats"""
    interviews = controller.repository.list_interviews(limit=10)
    return DashboardOut(
        interviews=[InterviewOut.model_validate(i) for i in interviews],
        stats=build_dashboard_stats(interviews),
    )


@app.get("/api/interviews/{interview_id}/session")
def resume_interview(interview_id: str, controller: InterviewSessionController = Depends(get_controller)):
    """Current state of an interview, rebuilt from what has been saved"""
    try:
        snapshot = controller.resume(interview_id)
    except InterviewAlreadyCompleted:
        return {
            "completed": True,
            "message": "Interview already completed",
            "results_url": f"/api/interviews/{interview_id}/results",
        }

    total = snapshot.interview.total_questions
    return SessionOut(
        interview=InterviewOut.model_validate(snapshot.interview),
        state=snapshot.state,
        history=[_qa_turn(t) for t in snapshot.history],
        current_question=_question_out(snapshot.current_question, total) if snapshot.current_question else None,
        question_number=snapshot.question_number,
    )


@app.post("/api/interviews/{interview_id}/questions/next", response_model=QuestionOut)
async def next_question(interview_id: str, controller: InterviewSessionController = Depends(get_controller)):
    """Generate the next question, or return the one still waiting for an answer"""
    question = await controller.generate_next_question(interview_id)
    interview = controller.repository.get_interview(interview_id)
    return _question_out(question, interview.total_questions)


@app.post("/api/interviews/{interview_id}/answers", response_model=AnswerResult)
async def submit_answer(interview_id: str, answer_data: AnswerSubmit, controller: InterviewSessionController = Depends(get_controller)):
    """Submit answer for the current question"""
    outcome = await controller.submit_answer(interview_id, answer_data.question_id, answer_data.answer_text)
    return AnswerResult(
        turn=_qa_turn(outcome.turn),
        next_state=outcome.next_state,
        answered_count=outcome.answered_count,
        total_questions=outcome.total_questions,
    )


@app.post("/api/interviews/{interview_id}/finalize", response_model=InterviewOut)
async def finalize_interview(interview_id: str, controller: InterviewSessionController = Depends(get_controller)):
    return await controller.finalize(interview_id)


@app.post("/api/interviews/{interview_id}/advance", response_model=AdvanceResult)
async def advance_interview(interview_id: str, controller: InterviewSessionController = Depends(get_controller)):
    outcome = await controller.advance(interview_id)
    interview = outcome.interview
    current = None
    if outcome.current_question is not None:
        current = _question_out(outcome.current_question, interview.total_questions)
    return AdvanceResult(state=outcome.state, current_question=current,
                         interview=InterviewOut.model_validate(interview))


@app.post("/api/interviews/{interview_id}/cancel", response_model=InterviewOut)
def cancel_interview(interview_id: str, controller: InterviewSessionController = Depends(get_controller)):
    return controller.cancel(interview_id)


@app.get("/api/interviews/{interview_id}/results", response_model=ResultsOut)
def get_results(interview_id: str, controller: InterviewSessionController = Depends(get_controller)):
    """Scored breakdown of a completed interview"""
    interview, turns = controller.results(interview_id)
    return ResultsOut(
        interview=InterviewOut.model_validate(interview),
        answers=[_qa_turn(t) for t in turns],
    )


@app.post("/api/interview-ai")
async def interview_ai(
    body: GenerationRequest,
    session: UserSession = Depends(get_current_session),
    generation: GenerationService = Depends(get_generation_service),
):
    """Stateless proxy to the AI gateway"""
    try:
        result = await generation.generate(body)
    except GenerationFailed as e:
        status = e.status_code if e.status_code in (429, 402) else 500
        return JSONResponse(status_code=status, content={"error": e.message})
    return {"result": result}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
