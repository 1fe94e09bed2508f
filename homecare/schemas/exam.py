from pydantic import Field, field_validator
from typing import Optional, List, Dict, Any, Literal, Union
from datetime import datetime

from homecare.core.constants import (
    ExamStatusEnum,
    QuestionTypeEnum,
    ExamAttemptStatusEnum,
    CertificateStatusEnum,
    AttemptStateEnum,
    CertificateStateEnum,
)
from homecare.schemas.base import CamelModel
from homecare.utils.formatting import round_half_up

class ExamQuestion(CamelModel):
    id: Optional[str] = None
    question: str
    type: QuestionTypeEnum = QuestionTypeEnum.MULTIPLE_CHOICE
    options: List[str] = []
    correct_answer: Optional[int] = None # Index into options; only sent with includeAnswers
    points: Optional[int] = None
    explanation: Optional[str] = None
    order: Optional[int] = None

class Exam(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    duration: int = 0 # minutes
    passing_score: int = Field(default=70, ge=0, le=100)
    status: ExamStatusEnum = ExamStatusEnum.PUBLISHED
    max_attempts: int = 1
    created_by_id: Optional[str] = None
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    questions: List[ExamQuestion] = []

    @field_validator("questions", mode="before")
    @classmethod
    def questions_default(cls, v):
        return v or []

class ExamCertificate(CamelModel):
    id: str
    exam_id: str
    attempt_id: str
    user_id: str
    status: CertificateStatusEnum = CertificateStatusEnum.PENDING
    score: float
    certificate_number: str
    issued_at: datetime
    approved_at: Optional[datetime] = None
    approved_by_id: Optional[str] = None
    exam_title: Optional[str] = None
    user_name: Optional[str] = None
    approved_by_name: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

class ExamAttempt(CamelModel):
    id: str
    exam_id: str
    user_id: str
    started_at: datetime
    submitted_at: Optional[datetime] = None
    score: Optional[int] = None # whole percent, 0-100
    passed: Optional[bool] = None
    time_spent: Optional[int] = None # minutes
    status: ExamAttemptStatusEnum = ExamAttemptStatusEnum.IN_PROGRESS
    user_name: Optional[str] = None
    exam_title: Optional[str] = None
    question_order: Optional[List[str]] = None
    certificate: Optional[ExamCertificate] = None

    @field_validator("score", mode="before")
    @classmethod
    def score_whole_percent(cls, v):
        if isinstance(v, float):
            return int(round_half_up(v))
        return v

class SubmitAnswer(CamelModel):
    question_id: str
    answer: int

class SubmitAttempt(CamelModel):
    answers: List[SubmitAnswer] = []

class ExamQueryParams(CamelModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    status: Optional[ExamStatusEnum] = None
    user_id: Optional[str] = None

class AttemptQueryParams(CamelModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    exam_id: Optional[str] = None
    user_id: Optional[str] = None

class CertificateQueryParams(CamelModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    status: Optional[CertificateStatusEnum] = None
    user_id: Optional[str] = None

class QuestionView(CamelModel):
    """A question as shown to the candidate; never carries the correct answer."""
    id: Optional[str] = None
    question: str
    type: QuestionTypeEnum
    options: List[str] = []
    points: Optional[int] = None

class AttemptSessionView(CamelModel):
    session_id: str
    exam_id: str
    exam_title: str
    passing_score: int
    attempt_id: Optional[str] = None
    state: AttemptStateEnum
    status: Optional[ExamAttemptStatusEnum] = None
    total_questions: int
    current_question_index: int
    current_question: Optional[QuestionView] = None
    answers: List[int] = []
    answered_count: int = 0
    progress: int = 0
    requires_confirmation: bool = False
    time_remaining: Optional[int] = None
    time_remaining_display: Optional[str] = None
    score: Optional[int] = None
    passed: Optional[bool] = None
    certificate_state: CertificateStateEnum = CertificateStateEnum.NONE
    certificate: Optional[ExamCertificate] = None

class AnswerSelection(CamelModel):
    option_index: int

class NavigateRequest(CamelModel):
    target: Union[Literal["next", "previous"], int]

class SubmitRequest(CamelModel):
    confirm: bool = False
