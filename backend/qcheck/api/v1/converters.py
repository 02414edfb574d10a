from __future__ import annotations

from datetime import datetime, timezone

from qcheck.api.v1.schemas.ledger import LedgerEntryModel, LedgerResponse
from qcheck.api.v1.schemas.paper import PaperResponse
from qcheck.api.v1.schemas.question import ContentBlockModel, OptionModel, QuestionResponse, QuestionWriteRequest
from qcheck.api.v1.schemas.user import UserResponse
from qcheck.domain.models import (
    Complexity,
    ContentBlock,
    LedgerCategory,
    LedgerEntryRecord,
    LedgerOwner,
    OptionRecord,
    PaperRecord,
    QuestionDraft,
    QuestionRecord,
    UserRecord,
)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    # SQLite hands back naive datetimes; every stored time is UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def to_question_draft(body: QuestionWriteRequest) -> QuestionDraft:
    return QuestionDraft(
        body=ContentBlock(text=body.question.text, image=body.question.image),
        options=[OptionRecord(text=item.text, image=item.image, is_correct=item.isCorrect) for item in body.options],
        explanation=ContentBlock(text=body.explanation.text, image=body.explanation.image),
        reference=body.reference,
        course=body.course,
        subject=body.subject,
        unit=body.unit,
        chapter=body.chapter,
        complexity=Complexity(body.complexity),
        keywords=list(body.keywords),
        paper_id=body.paperId,
        position_label=body.positionLabel,
    )


def question_response(row: QuestionRecord) -> QuestionResponse:
    return QuestionResponse(
        questionId=row.question_id,
        authorId=row.author_id,
        status=row.status.value,
        question=ContentBlockModel(text=row.body.text, image=row.body.image),
        options=[OptionModel(text=item.text, image=item.image, isCorrect=item.is_correct) for item in row.options],
        explanation=ContentBlockModel(text=row.explanation.text, image=row.explanation.image),
        reference=row.reference,
        course=row.course,
        subject=row.subject,
        unit=row.unit,
        chapter=row.chapter,
        complexity=row.complexity.value,
        keywords=row.keywords,
        paperId=row.paper_id,
        positionLabel=row.position_label,
        reviewerId=row.reviewer_id,
        reviewerComment=row.reviewer_comment,
        createdAt=_iso(row.created_at),
        updatedAt=_iso(row.updated_at),
    )


def paper_response(row: PaperRecord) -> PaperResponse:
    return PaperResponse(
        paperId=row.paper_id,
        name=row.name,
        sourceUrl=row.source_url,
        uploadedBy=row.uploaded_by,
        claimedBy=row.claimed_by,
        createdAt=_iso(row.created_at),
    )


def user_response(row: UserRecord) -> UserResponse:
    return UserResponse(userId=row.user_id, name=row.name, email=row.email, role=row.role.value)


def ledger_response(
    owner: LedgerOwner, owner_id: str, entries: dict[LedgerCategory, list[LedgerEntryRecord]]
) -> LedgerResponse:
    return LedgerResponse(
        ownerKind=owner.value,
        ownerId=owner_id,
        entries={
            category.value: {
                item.question_id: LedgerEntryModel(
                    count=item.count, timestamps=[_iso(stamp) for stamp in item.timestamps]
                )
                for item in items
            }
            for category, items in entries.items()
        },
    )
