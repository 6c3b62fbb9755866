from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


QuestionType = Literal["single", "multi"]
AspectRatio = Literal["1:1", "16:9", "9:16", "4:3", "3:4"]
ImageSize = Literal["1K", "2K", "4K"]

ASPECT_RATIOS: tuple = ("1:1", "16:9", "9:16", "4:3", "3:4")
IMAGE_SIZES: tuple = ("1K", "2K", "4K")


def _check_unique_ids(items: list, label: str) -> list:
    # id 0 means "not assigned yet", several of those are fine
    seen: set = set()
    for item in items:
        if not item.id:
            continue
        if item.id in seen:
            raise ValueError(f"duplicate {label} id {item.id}")
        seen.add(item.id)
    return items


# ---- Quiz document ----

class Option(BaseModel):
    id: int = 0
    question_id: int = 0
    text: str = ""
    score: int = 0

    class Config:
        from_attributes = True


class Question(BaseModel):
    id: int = 0
    quiz_id: int = 0
    text: str = ""
    type: QuestionType = "single"
    position: int = 0
    options: List[Option] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @field_validator("options")
    @classmethod
    def _unique_option_ids(cls, value: List[Option]) -> List[Option]:
        return _check_unique_ids(value, "option")


class Quiz(BaseModel):
    id: int = 0
    title: str = ""
    description: str = ""
    created_at: str = Field(default_factory=now_iso)
    questions: List[Question] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @field_validator("description", mode="before")
    @classmethod
    def _description_not_null(cls, value: Optional[str]) -> str:
        return value or ""

    @field_validator("questions")
    @classmethod
    def _unique_question_ids(cls, value: List[Question]) -> List[Question]:
        return _check_unique_ids(value, "question")


# ---- Submissions ----

class Answer(BaseModel):
    question_id: int
    option_id: int


class Submission(BaseModel):
    id: int = 0
    quiz_id: int
    total_score: int = 0
    submitted_at: str = Field(default_factory=now_iso)
    answers: List[Answer] = Field(default_factory=list)

    class Config:
        from_attributes = True


class SubmissionCreate(BaseModel):
    """What a respondent sends. Any total_score in the body is ignored."""

    quiz_id: int
    answers: List[Answer] = Field(default_factory=list)


# ---- Responses ----

class SaveResult(BaseModel):
    message: str
    id: int


class SubmitResult(BaseModel):
    message: str = "Submitted"
    id: int
    total_score: int
    max_score: int


class MessageOut(BaseModel):
    message: str


# ---- Analytics ----

class OptionAnalysis(BaseModel):
    option_id: int
    text: str
    score: int
    count: int
    percentage: int


class QuestionAnalysis(BaseModel):
    question_id: int
    text: str
    type: QuestionType
    position: int
    options: List[OptionAnalysis]


class QuizSummary(BaseModel):
    count: int
    average_score: float


class QuizReport(BaseModel):
    quiz_id: int
    title: str
    max_score: int
    summary: QuizSummary
    questions: List[QuestionAnalysis]


# ---- Images ----

class ImageGenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    aspect_ratio: AspectRatio = "1:1"
    image_size: ImageSize = "1K"


# ---- Auth ----

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
