from __future__ import annotations

import io
import logging

from PIL import Image, UnidentifiedImageError

from qcheck.core.errors import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError
from qcheck.domain.models import Actor, QuestionDraft, QuestionRecord, QuestionStatus, Role
from qcheck.domain.workflow import Action, Capability, ensure_capability, is_editable, plan_transition
from qcheck.infra.db.store import DatabaseStore
from qcheck.infra.ports.storage import StoragePort, StoredObject

logger = logging.getLogger(__name__)

_IMAGE_SUFFIXES = {
    "PNG": ".png",
    "JPEG": ".jpg",
    "WEBP": ".webp",
}
_MAX_IMAGE_BYTES = 5 * 1024 * 1024


def validate_draft(draft: QuestionDraft) -> QuestionDraft:
    """Normalise author input and reject content that cannot be reviewed."""
    if not draft.body.text.strip() and not draft.body.image:
        raise ValidationError("Question text is required")
    if not draft.subject or not draft.subject.strip():
        raise ValidationError("Subject is required")
    if len(draft.options) < 2:
        raise ValidationError("A question needs at least two options")
    for idx, option in enumerate(draft.options, start=1):
        if not option.text.strip() and not option.image:
            raise ValidationError(f"Option {idx} needs text or an image")
    if sum(1 for option in draft.options if option.is_correct) > 1:
        raise ValidationError("At most one option may be marked correct")

    draft.subject = draft.subject.strip()
    draft.keywords = list(dict.fromkeys(item.strip() for item in draft.keywords if item and item.strip()))
    return draft


def _clean_ids(question_ids: list[str]) -> list[str]:
    ids = list(dict.fromkeys(item.strip() for item in question_ids if item and item.strip()))
    if not ids:
        raise ValidationError("No question ids provided")
    return ids


class AuthoringService:
    def __init__(self, *, store: DatabaseStore, storage: StoragePort):
        self.store = store
        self.storage = storage

    def _check_paper(self, db, draft: QuestionDraft, author: Actor) -> None:
        if not draft.paper_id:
            return
        paper = self.store.find_paper(db, draft.paper_id)
        if paper is None:
            raise NotFoundError(f"Paper {draft.paper_id} not found")
        if paper.claimed_by != author.id:
            raise PermissionDeniedError("Questions can only be sourced from papers you have claimed")

    def _load_own(self, db, question_id: str, author: Actor) -> QuestionRecord:
        question = self.store.find_question(db, question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        if question.author_id != author.id:
            raise PermissionDeniedError("Only the question's author may do this")
        return question

    def create(self, author: Actor, draft: QuestionDraft, *, submit: bool = False) -> QuestionRecord:
        ensure_capability(author, Capability.AUTHOR_QUESTIONS)
        draft = validate_draft(draft)
        status = QuestionStatus.PENDING if submit else QuestionStatus.DRAFT

        with self.store.unit_of_work() as db:
            self._check_paper(db, draft, author)
            record = self.store.insert_question(db, author_id=author.id, draft=draft, status=status)

        logger.info("Question %s created by %s as %s", record.question_id, author.id, status.value)
        return record

    def update(self, author: Actor, question_id: str, draft: QuestionDraft) -> QuestionRecord:
        ensure_capability(author, Capability.AUTHOR_QUESTIONS)
        draft = validate_draft(draft)

        with self.store.unit_of_work() as db:
            question = self._load_own(db, question_id, author)
            if not is_editable(question.status):
                raise InvalidStateError(f"A {question.status.value} question cannot be edited")
            self._check_paper(db, draft, author)
            return self.store.update_question_content(db, question_id=question_id, draft=draft)

    def _move_to_pending(self, action: Action, question_id: str, author: Actor) -> QuestionRecord:
        with self.store.unit_of_work() as db:
            question = self.store.find_question(db, question_id)
            if question is None:
                raise NotFoundError(f"Question {question_id} not found")
            target = plan_transition(action, current=question.status, actor=author, author_id=question.author_id)
            # Reviewer and comment stay in place until the next decision replaces them.
            moved = self.store.transition_question(
                db, question_id=question_id, expected=question.status, values={"status": target.value}
            )
            if not moved:
                raise InvalidStateError(f"Question {question_id} changed status concurrently")
            updated = self.store.find_question(db, question_id)

        logger.info("Question %s moved to %s by %s (%s)", question_id, target.value, author.id, action.value)
        return updated

    def submit(self, question_id: str, author: Actor) -> QuestionRecord:
        return self._move_to_pending(Action.SUBMIT, question_id, author)

    def resubmit(self, question_id: str, author: Actor) -> QuestionRecord:
        return self._move_to_pending(Action.RESUBMIT, question_id, author)

    def submit_many(self, author: Actor, question_ids: list[str]) -> int:
        """Submit the author's own drafts among ``question_ids``; returns how many moved."""
        ensure_capability(author, Capability.AUTHOR_QUESTIONS)
        ids = _clean_ids(question_ids)

        with self.store.unit_of_work() as db:
            drafts = self.store.find_questions(db, ids, status=QuestionStatus.DRAFT, author_id=author.id)
            if not drafts:
                return 0
            moved = self.store.transition_questions(
                db,
                question_ids=[item.question_id for item in drafts],
                expected=QuestionStatus.DRAFT,
                values={"status": QuestionStatus.PENDING.value},
            )

        logger.info("%d question(s) submitted for review by %s", moved, author.id)
        return moved

    def delete_drafts(self, author: Actor, question_ids: list[str]) -> int:
        ensure_capability(author, Capability.AUTHOR_QUESTIONS)
        ids = _clean_ids(question_ids)

        with self.store.unit_of_work() as db:
            deleted = self.store.delete_questions(
                db, question_ids=ids, author_id=author.id, status=QuestionStatus.DRAFT
            )

        logger.info("%d draft(s) deleted by %s", deleted, author.id)
        return deleted

    def list_drafts(self, author: Actor) -> list[QuestionRecord]:
        ensure_capability(author, Capability.AUTHOR_QUESTIONS)
        return self.store.list_questions(author_id=author.id, statuses=(QuestionStatus.DRAFT,))

    def list_submitted(self, author: Actor) -> list[QuestionRecord]:
        ensure_capability(author, Capability.AUTHOR_QUESTIONS)
        return self.store.list_questions(
            author_id=author.id,
            statuses=(QuestionStatus.PENDING, QuestionStatus.APPROVED, QuestionStatus.REJECTED),
        )

    def get_question(self, actor: Actor, question_id: str) -> QuestionRecord:
        question = self.store.get_question(question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        if actor.role == Role.MAKER and question.author_id != actor.id:
            raise PermissionDeniedError("Not authorized to view this question")
        return question

    def upload_image(self, author: Actor, payload: bytes) -> StoredObject:
        """Store an image for a question body, option or explanation."""
        ensure_capability(author, Capability.AUTHOR_QUESTIONS)
        if not payload:
            raise ValidationError("Empty upload")
        if len(payload) > _MAX_IMAGE_BYTES:
            raise ValidationError("Images are limited to 5 MB")

        try:
            with Image.open(io.BytesIO(payload)) as image:
                image_format = (image.format or "").upper()
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise ValidationError("Upload is not a readable image") from exc

        suffix = _IMAGE_SUFFIXES.get(image_format)
        if suffix is None:
            raise ValidationError("Unsupported image format. Use PNG/JPG/WEBP.")

        stored = self.storage.upload(
            payload, content_type=f"image/{image_format.lower()}", folder=f"images/{author.id}", suffix=suffix
        )
        logger.info("Image %s uploaded by %s", stored.handle, author.id)
        return stored
