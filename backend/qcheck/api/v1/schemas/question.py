from typing import Literal

from pydantic import BaseModel, Field

QuestionStatus = Literal["Draft", "Pending", "Approved", "Rejected"]
Complexity = Literal["Easy", "Medium", "Hard"]


class ContentBlockModel(BaseModel):
    text: str = ""
    image: str | None = None


class OptionModel(BaseModel):
    text: str = ""
    image: str | None = None
    isCorrect: bool = False


class QuestionWriteRequest(BaseModel):
    question: ContentBlockModel
    options: list[OptionModel] = Field(default_factory=list)
    explanation: ContentBlockModel = Field(default_factory=ContentBlockModel)
    reference: str | None = None
    course: str | None = None
    subject: str
    unit: str | None = None
    chapter: str | None = None
    complexity: Complexity = "Easy"
    keywords: list[str] = Field(default_factory=list)
    paperId: str | None = None
    positionLabel: str | None = None


class QuestionCreateRequest(QuestionWriteRequest):
    submit: bool = False


class QuestionResponse(BaseModel):
    questionId: str
    authorId: str
    status: QuestionStatus
    question: ContentBlockModel
    options: list[OptionModel]
    explanation: ContentBlockModel
    reference: str | None = None
    course: str | None = None
    subject: str
    unit: str | None = None
    chapter: str | None = None
    complexity: Complexity
    keywords: list[str] = Field(default_factory=list)
    paperId: str | None = None
    positionLabel: str | None = None
    reviewerId: str | None = None
    reviewerComment: str = ""
    createdAt: str | None = None
    updatedAt: str | None = None


class QuestionListResponse(BaseModel):
    questions: list[QuestionResponse]
    count: int


class QuestionIdsRequest(BaseModel):
    ids: list[str]


class QuestionCountResponse(BaseModel):
    ok: bool = True
    count: int


class ImageUploadResponse(BaseModel):
    url: str
    handle: str
