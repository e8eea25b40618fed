from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from enums import Difficulty, GenerationTask, InterviewStatus, InterviewType, SessionState


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=2)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class InterviewCreate(BaseModel):
    job_role: str
    difficulty: Difficulty = Difficulty.MID
    interview_type: InterviewType = InterviewType.BEHAVIORAL
    total_questions: int = 5


class InterviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_role: str
    difficulty: Difficulty
    interview_type: InterviewType
    total_questions: int
    status: InterviewStatus
    overall_score: Optional[float] = None
    strengths: Optional[List[str]] = None
    improvements: Optional[List[str]] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class QuestionOut(BaseModel):
    question_id: str
    question: str
    question_number: int
    total_questions: int


class QATurn(BaseModel):
    question_id: str
    question: str
    answer: str
    feedback: Optional[str] = None
    score: Optional[float] = None


class SessionOut(BaseModel):
    interview: InterviewOut
    state: SessionState
    history: List[QATurn]
    current_question: Optional[QuestionOut] = None
    question_number: int


class AnswerSubmit(BaseModel):
    question_id: str
    answer_text: str


class AnswerResult(BaseModel):
    turn: QATurn
    next_state: SessionState
    answered_count: int
    total_questions: int


class AdvanceResult(BaseModel):
    state: SessionState
    current_question: Optional[QuestionOut] = None
    interview: InterviewOut


class ResultsOut(BaseModel):
    interview: InterviewOut
    answers: List[QATurn]


class DailyScore(BaseModel):
    day: date
    label: str
    count: int
    average_score: Optional[float] = None


class DashboardStats(BaseModel):
    total_interviews: int
    completed_interviews: int
    average_score: float
    last_week_interviews: int
    daily_scores: List[DailyScore] = Field(default_factory=list)


class DashboardOut(BaseModel):
    interviews: List[InterviewOut]
    stats: DashboardStats


class QARecord(BaseModel):
    question: str
    answer: str
    score: float = 5


class GenerationRequest(BaseModel):
    """Body of the generation proxy; field names follow the client's camelCase wire format."""
    model_config = ConfigDict(populate_by_name=True)

    type: GenerationTask
    job_role: str = Field(alias="jobRole")
    difficulty: str
    interview_type: str = Field(alias="interviewType")
    question_number: Optional[int] = Field(default=None, alias="questionNumber")
    total_questions: Optional[int] = Field(default=None, alias="totalQuestions")
    previous_questions: List[str] = Field(default_factory=list, alias="previousQuestions")
    current_question: Optional[str] = Field(default=None, alias="currentQuestion")
    user_answer: Optional[str] = Field(default=None, alias="userAnswer")
    all_qa: List[QARecord] = Field(default_factory=list, alias="allQA")
