from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    MAKER = "maker"
    CHECKER = "checker"
    ADMIN = "admin"


class QuestionStatus(str, Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Complexity(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class LedgerOwner(str, Enum):
    AUTHOR = "author"
    REVIEWER = "reviewer"


class LedgerCategory(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FALSE_REJECTION = "falseRejection"


LEDGER_CATEGORIES: dict[LedgerOwner, frozenset[LedgerCategory]] = {
    LedgerOwner.AUTHOR: frozenset({LedgerCategory.ACCEPTED, LedgerCategory.REJECTED}),
    LedgerOwner.REVIEWER: frozenset(
        {LedgerCategory.ACCEPTED, LedgerCategory.REJECTED, LedgerCategory.FALSE_REJECTION}
    ),
}

# A rejection carrying exactly this comment, later approved unchanged, counts
# against the rejecting reviewer.
NO_CORRECTIONS_REQUIRED = "No corrections required"


@dataclass(frozen=True)
class Actor:
    """Caller identity, passed explicitly into every core operation."""

    id: str
    role: Role


@dataclass
class ContentBlock:
    text: str = ""
    image: str | None = None

    def to_json(self) -> dict[str, Any]:
        return {"text": self.text, "image": self.image}

    @classmethod
    def from_json(cls, data: dict[str, Any] | None) -> ContentBlock:
        data = data or {}
        return cls(text=str(data.get("text") or ""), image=data.get("image") or None)


@dataclass
class OptionRecord:
    text: str = ""
    image: str | None = None
    is_correct: bool = False

    def to_json(self) -> dict[str, Any]:
        return {"text": self.text, "image": self.image, "isCorrect": self.is_correct}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> OptionRecord:
        return cls(
            text=str(data.get("text") or ""),
            image=data.get("image") or None,
            is_correct=bool(data.get("isCorrect")),
        )


@dataclass
class QuestionDraft:
    """Author-supplied question content, validated before it is stored."""

    body: ContentBlock
    options: list[OptionRecord]
    subject: str
    explanation: ContentBlock = field(default_factory=ContentBlock)
    reference: str | None = None
    course: str | None = None
    unit: str | None = None
    chapter: str | None = None
    complexity: Complexity = Complexity.EASY
    keywords: list[str] = field(default_factory=list)
    paper_id: str | None = None
    position_label: str | None = None


@dataclass
class QuestionRecord:
    question_id: str
    author_id: str
    status: QuestionStatus
    body: ContentBlock
    options: list[OptionRecord]
    explanation: ContentBlock
    subject: str
    reference: str | None = None
    course: str | None = None
    unit: str | None = None
    chapter: str | None = None
    complexity: Complexity = Complexity.EASY
    keywords: list[str] = field(default_factory=list)
    paper_id: str | None = None
    position_label: str | None = None
    reviewer_id: str | None = None
    reviewer_comment: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class PaperRecord:
    paper_id: str
    name: str
    source_url: str
    uploaded_by: str | None = None
    claimed_by: str | None = None
    created_at: datetime | None = None


@dataclass
class UserRecord:
    user_id: str
    name: str
    email: str
    role: Role


@dataclass
class LedgerEntryRecord:
    category: LedgerCategory
    question_id: str
    count: int
    timestamps: list[datetime] = field(default_factory=list)


@dataclass
class BulkApproveResult:
    approved_count: int
    question_ids: list[str]
