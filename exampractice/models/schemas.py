from datetime import datetime, timezone
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

ExamStatus = Literal["in_progress", "submitted"]

class ExamCreate(BaseModel):
    subject_id: Optional[str] = None
    topic_id: Optional[str] = None
    total_questions: Optional[int] = None
    duration_seconds: Optional[int] = None

class ExamCreated(BaseModel):
    exam_id: str

class ExamOut(BaseModel):
    id: str
    user_id: str
    subject_id: str
    topic_id: Optional[str] = None
    total_questions: int
    duration_seconds: int
    status: ExamStatus
    started_at: datetime
    submitted_at: Optional[datetime] = None

    @field_validator("started_at", "submitted_at")
    @classmethod
    def as_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

class QuestionOut(BaseModel):
    id: str
    question_text: str
    option_a: Optional[str] = None
    option_b: Optional[str] = None
    option_c: Optional[str] = None
    option_d: Optional[str] = None
    option_e: Optional[str] = None
    correct_answer: str
    explanation: Optional[str] = None
    difficulty: str = "medium"
    qtype: str = "single"
    image_url: Optional[str] = None

class AnswerOut(BaseModel):
    question_id: str
    selected_answer: Optional[str] = None
    is_correct: Optional[bool] = None

class ExamBundle(BaseModel):
    exam: ExamOut
    questions: List[QuestionOut]
    answers: List[AnswerOut]

class AnswerIn(BaseModel):
    question_id: str
    selected_answer: Optional[str] = None
    is_correct: Optional[bool] = None

class AnswersIn(BaseModel):
    answers: List[AnswerIn] = Field(min_length=1)

class ResultOption(BaseModel):
    key: str; text: str; is_answer: bool; chosen: bool

class ResultRow(BaseModel):
    question_id: str
    question_text: str
    selected_answer: str
    correct_answer: str
    is_correct: bool
    stored_correct: bool
    explanation: Optional[str] = None
    options: List[ResultOption]

class ExamResult(BaseModel):
    exam_id: str
    submitted: bool
    message: Optional[str] = None
    correct: int
    total: int
    rows: List[ResultRow]

class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    text: str

class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1)

class ChatReply(BaseModel):
    text: str
