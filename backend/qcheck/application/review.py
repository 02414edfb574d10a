"""Review decisions and their ledger side effects.

Every public method here is one unit of work: the question status change,
the reviewer and author ledger appends, and any false-rejection entry either
all commit together or none of them do.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from qcheck.core.errors import InvalidStateError, NotFoundError, ValidationError
from qcheck.domain.models import (
    NO_CORRECTIONS_REQUIRED,
    Actor,
    BulkApproveResult,
    LedgerCategory,
    LedgerOwner,
    QuestionRecord,
    QuestionStatus,
)
from qcheck.domain.workflow import Action, authorize, plan_transition, require_comment, review_fields
from qcheck.infra.db.ledger import LedgerAppender
from qcheck.infra.db.store import DatabaseStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReviewCoordinator:
    def __init__(
        self,
        *,
        store: DatabaseStore,
        appender: LedgerAppender | None = None,
        clock: Callable[[], datetime] = _utcnow,
        bulk_limit: int = 500,
    ):
        self.store = store
        self.appender = appender or LedgerAppender()
        self.clock = clock
        self.bulk_limit = bulk_limit

    def _append_outcome(self, db, *, question: QuestionRecord, reviewer_id: str, category: LedgerCategory, at: datetime):
        self.appender.append(
            db,
            owner=LedgerOwner.REVIEWER,
            owner_id=reviewer_id,
            category=category,
            question_id=question.question_id,
            at=at,
        )
        self.appender.append(
            db,
            owner=LedgerOwner.AUTHOR,
            owner_id=question.author_id,
            category=category,
            question_id=question.question_id,
            at=at,
        )

    def _log_false_rejection(self, db, *, question: QuestionRecord, at: datetime) -> bool:
        # The author resubmitted unchanged, asserting the earlier rejection was wrong.
        if question.reviewer_comment != NO_CORRECTIONS_REQUIRED or question.reviewer_id is None:
            return False
        self.appender.append(
            db,
            owner=LedgerOwner.REVIEWER,
            owner_id=question.reviewer_id,
            category=LedgerCategory.FALSE_REJECTION,
            question_id=question.question_id,
            at=at,
        )
        return True

    def _load(self, db, question_id: str) -> QuestionRecord:
        question = self.store.find_question(db, question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        return question

    def approve(self, question_id: str, reviewer: Actor) -> QuestionRecord:
        authorize(Action.APPROVE, reviewer)

        with self.store.unit_of_work() as db:
            question = self._load(db, question_id)
            plan_transition(Action.APPROVE, current=question.status, actor=reviewer, author_id=question.author_id)

            at = self.clock()
            moved = self.store.transition_question(
                db,
                question_id=question_id,
                expected=QuestionStatus.PENDING,
                values=review_fields(QuestionStatus.APPROVED, reviewer_id=reviewer.id),
            )
            if not moved:
                raise InvalidStateError(f"Question {question_id} was reviewed by someone else first")
            # Status swap precedes every ledger write.
            flagged = self._log_false_rejection(db, question=question, at=at)
            self._append_outcome(
                db, question=question, reviewer_id=reviewer.id, category=LedgerCategory.ACCEPTED, at=at
            )
            updated = self._load(db, question_id)

        logger.info(
            "Question %s approved by %s (false rejection logged: %s)", question_id, reviewer.id, flagged
        )
        return updated

    def reject(self, question_id: str, reviewer: Actor, comment: str | None) -> QuestionRecord:
        authorize(Action.REJECT, reviewer)
        comment = require_comment(comment)

        with self.store.unit_of_work() as db:
            question = self._load(db, question_id)
            plan_transition(Action.REJECT, current=question.status, actor=reviewer, author_id=question.author_id)

            at = self.clock()
            moved = self.store.transition_question(
                db,
                question_id=question_id,
                expected=QuestionStatus.PENDING,
                values=review_fields(QuestionStatus.REJECTED, reviewer_id=reviewer.id, comment=comment),
            )
            if not moved:
                raise InvalidStateError(f"Question {question_id} was reviewed by someone else first")
            self._append_outcome(
                db, question=question, reviewer_id=reviewer.id, category=LedgerCategory.REJECTED, at=at
            )
            updated = self._load(db, question_id)

        logger.info("Question %s rejected by %s", question_id, reviewer.id)
        return updated

    def bulk_approve(self, question_ids: list[str], reviewer: Actor) -> BulkApproveResult:
        """Approve every listed question that is still Pending.

        Ids that are missing or not Pending are skipped, not reported as
        errors. A batch that matches nothing raises NotFoundError.
        """
        authorize(Action.APPROVE, reviewer)
        ids = list(dict.fromkeys(item.strip() for item in question_ids if item and item.strip()))
        if not ids:
            raise ValidationError("No question ids provided")
        if len(ids) > self.bulk_limit:
            raise ValidationError(f"At most {self.bulk_limit} questions can be approved at once")

        with self.store.unit_of_work() as db:
            matched = self.store.find_questions(db, ids, status=QuestionStatus.PENDING)
            if not matched:
                raise NotFoundError("None of the given questions are pending review")

            matched_ids = [item.question_id for item in matched]
            moved = self.store.transition_questions(
                db,
                question_ids=matched_ids,
                expected=QuestionStatus.PENDING,
                values=review_fields(QuestionStatus.APPROVED, reviewer_id=reviewer.id),
            )
            if moved != len(matched_ids):
                raise InvalidStateError("Some questions in the batch were reviewed by someone else first")

            at = self.clock()
            flagged = 0
            for question in matched:
                if self._log_false_rejection(db, question=question, at=at):
                    flagged += 1
                self._append_outcome(
                    db, question=question, reviewer_id=reviewer.id, category=LedgerCategory.ACCEPTED, at=at
                )

        logger.info(
            "Bulk approval by %s: %d of %d requested approved, %d false rejections logged",
            reviewer.id,
            len(matched_ids),
            len(ids),
            flagged,
        )
        return BulkApproveResult(approved_count=len(matched_ids), question_ids=matched_ids)


class ReviewQueue:
    """Checker-facing reads over the review workflow."""

    def __init__(self, *, store: DatabaseStore):
        self.store = store

    def pending(self, reviewer: Actor) -> list[QuestionRecord]:
        authorize(Action.APPROVE, reviewer)
        return self.store.list_questions(statuses=(QuestionStatus.PENDING,), newest_first=False)

    def reviewed(self, reviewer: Actor) -> list[QuestionRecord]:
        authorize(Action.APPROVE, reviewer)
        return self.store.list_questions(statuses=(QuestionStatus.APPROVED, QuestionStatus.REJECTED))
