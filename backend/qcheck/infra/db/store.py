from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import delete, desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from qcheck.core.errors import QCheckError, StoreError
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
    QuestionStatus,
    Role,
    UserRecord,
)
from qcheck.infra.db.ledger import load_ledger
from qcheck.infra.db.models import PaperRow, QuestionRow, UserRow
from qcheck.infra.db.session import get_session_factory
from qcheck.utils.ids import new_public_id

logger = logging.getLogger(__name__)


class DatabaseStore:
    """Persistence layer backed by SQLAlchemy.

    Plain read methods open and close their own session. Methods that take a
    ``db`` argument run inside a caller's :meth:`unit_of_work`.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory or get_session_factory()

    @contextmanager
    def unit_of_work(self) -> Iterator[Session]:
        """One transaction: commits on success, rolls back every write on any error."""
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except QCheckError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Unit of work rolled back after store failure")
            raise StoreError("The data store rejected the operation; no changes were applied") from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _to_user_record(row: UserRow) -> UserRecord:
        return UserRecord(user_id=row.public_id, name=row.name, email=row.email, role=Role(row.role))

    @staticmethod
    def _to_paper_record(row: PaperRow) -> PaperRecord:
        return PaperRecord(
            paper_id=row.public_id,
            name=row.name,
            source_url=row.source_url,
            uploaded_by=row.uploaded_by,
            claimed_by=row.claimed_by,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_question_record(row: QuestionRow) -> QuestionRecord:
        return QuestionRecord(
            question_id=row.public_id,
            author_id=row.author_id,
            status=QuestionStatus(row.status),
            body=ContentBlock.from_json(row.body_json),
            options=[OptionRecord.from_json(item) for item in (row.options_json or [])],
            explanation=ContentBlock.from_json(row.explanation_json),
            subject=row.subject,
            reference=row.reference,
            course=row.course,
            unit=row.unit,
            chapter=row.chapter,
            complexity=Complexity(row.complexity),
            keywords=list(row.keywords_json or []),
            paper_id=row.paper_id,
            position_label=row.position_label,
            reviewer_id=row.reviewer_id,
            reviewer_comment=row.reviewer_comment or "",
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _content_values(draft: QuestionDraft) -> dict[str, Any]:
        return {
            "body_json": draft.body.to_json(),
            "options_json": [item.to_json() for item in draft.options],
            "explanation_json": draft.explanation.to_json(),
            "reference": draft.reference,
            "course": draft.course,
            "subject": draft.subject,
            "unit": draft.unit,
            "chapter": draft.chapter,
            "complexity": draft.complexity.value,
            "keywords_json": list(draft.keywords),
            "paper_id": draft.paper_id,
            "position_label": draft.position_label,
        }

    # users

    def create_user(self, db: Session, *, name: str, email: str, role: Role) -> UserRecord | None:
        """Insert a user; returns None if the email is already taken."""
        existing = db.execute(select(UserRow.id).where(UserRow.email == email)).scalar_one_or_none()
        if existing is not None:
            return None
        row = UserRow(public_id=new_public_id("usr_"), name=name, email=email, role=role.value)
        db.add(row)
        db.flush()
        return self._to_user_record(row)

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._session_factory() as db:
            row = db.execute(select(UserRow).where(UserRow.public_id == user_id)).scalar_one_or_none()
            if row is None:
                return None
            return self._to_user_record(row)

    def get_user_by_email(self, email: str) -> UserRecord | None:
        with self._session_factory() as db:
            row = db.execute(select(UserRow).where(UserRow.email == email)).scalar_one_or_none()
            if row is None:
                return None
            return self._to_user_record(row)

    def list_users(self, *, role: Role | None = None) -> list[UserRecord]:
        with self._session_factory() as db:
            stmt = select(UserRow)
            if role is not None:
                stmt = stmt.where(UserRow.role == role.value)
            rows = db.execute(stmt.order_by(UserRow.created_at.asc(), UserRow.id.asc())).scalars().all()
            return [self._to_user_record(row) for row in rows]

    def delete_user(self, db: Session, user_id: str) -> bool:
        result = db.execute(delete(UserRow).where(UserRow.public_id == user_id))
        return bool(result.rowcount)

    # papers

    def create_paper(
        self,
        db: Session,
        *,
        name: str,
        source_url: str,
        storage_handle: str,
        uploaded_by: str | None,
    ) -> PaperRecord | None:
        """Insert a paper; returns None if the name is already taken."""
        existing = db.execute(select(PaperRow.id).where(PaperRow.name == name)).scalar_one_or_none()
        if existing is not None:
            return None
        row = PaperRow(
            public_id=new_public_id("paper_"),
            name=name,
            source_url=source_url,
            storage_handle=storage_handle,
            uploaded_by=uploaded_by,
            claimed_by=None,
        )
        db.add(row)
        db.flush()
        return self._to_paper_record(row)

    def get_paper(self, paper_id: str) -> PaperRecord | None:
        with self._session_factory() as db:
            return self.find_paper(db, paper_id)

    def find_paper(self, db: Session, paper_id: str) -> PaperRecord | None:
        row = db.execute(select(PaperRow).where(PaperRow.public_id == paper_id)).scalar_one_or_none()
        if row is None:
            return None
        return self._to_paper_record(row)

    def list_papers(self, *, claimed: bool | None = None, claimed_by: str | None = None) -> list[PaperRecord]:
        with self._session_factory() as db:
            stmt = select(PaperRow)
            if claimed_by is not None:
                stmt = stmt.where(PaperRow.claimed_by == claimed_by)
            elif claimed is True:
                stmt = stmt.where(PaperRow.claimed_by.is_not(None))
            elif claimed is False:
                stmt = stmt.where(PaperRow.claimed_by.is_(None))
            rows = db.execute(stmt.order_by(desc(PaperRow.created_at), desc(PaperRow.id))).scalars().all()
            return [self._to_paper_record(row) for row in rows]

    def claim_paper(self, db: Session, *, paper_id: str, author_id: str) -> bool:
        """Compare-and-swap ``claimed_by`` from NULL to ``author_id``.

        Returns False when no row matched, either because the paper is
        missing or because another author holds it.
        """
        result = db.execute(
            update(PaperRow)
            .where(PaperRow.public_id == paper_id, PaperRow.claimed_by.is_(None))
            .values(claimed_by=author_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def delete_paper(self, db: Session, paper_id: str) -> str | None:
        """Delete a paper row and return its storage handle, or None if absent."""
        row = db.execute(select(PaperRow).where(PaperRow.public_id == paper_id)).scalar_one_or_none()
        if row is None:
            return None
        handle = row.storage_handle
        db.delete(row)
        db.flush()
        return handle

    # questions

    def insert_question(
        self,
        db: Session,
        *,
        author_id: str,
        draft: QuestionDraft,
        status: QuestionStatus,
    ) -> QuestionRecord:
        row = QuestionRow(
            public_id=new_public_id("q_"),
            author_id=author_id,
            status=status.value,
            reviewer_id=None,
            reviewer_comment="",
            **self._content_values(draft),
        )
        db.add(row)
        db.flush()
        db.refresh(row)
        return self._to_question_record(row)

    def update_question_content(self, db: Session, *, question_id: str, draft: QuestionDraft) -> QuestionRecord:
        row = db.execute(select(QuestionRow).where(QuestionRow.public_id == question_id)).scalar_one()
        for key, value in self._content_values(draft).items():
            setattr(row, key, value)
        db.flush()
        db.refresh(row)
        return self._to_question_record(row)

    def get_question(self, question_id: str) -> QuestionRecord | None:
        with self._session_factory() as db:
            return self.find_question(db, question_id)

    def find_question(self, db: Session, question_id: str) -> QuestionRecord | None:
        row = db.execute(
            select(QuestionRow)
            .where(QuestionRow.public_id == question_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            return None
        return self._to_question_record(row)

    def find_questions(
        self,
        db: Session,
        question_ids: list[str],
        *,
        status: QuestionStatus | None = None,
        author_id: str | None = None,
    ) -> list[QuestionRecord]:
        stmt = select(QuestionRow).where(QuestionRow.public_id.in_(question_ids))
        if status is not None:
            stmt = stmt.where(QuestionRow.status == status.value)
        if author_id is not None:
            stmt = stmt.where(QuestionRow.author_id == author_id)
        rows = db.execute(stmt.order_by(QuestionRow.id.asc())).scalars().all()
        return [self._to_question_record(row) for row in rows]

    def list_questions(
        self,
        *,
        author_id: str | None = None,
        statuses: tuple[QuestionStatus, ...] | None = None,
        newest_first: bool = True,
    ) -> list[QuestionRecord]:
        with self._session_factory() as db:
            stmt = select(QuestionRow)
            if author_id is not None:
                stmt = stmt.where(QuestionRow.author_id == author_id)
            if statuses:
                stmt = stmt.where(QuestionRow.status.in_([item.value for item in statuses]))
            if newest_first:
                stmt = stmt.order_by(desc(QuestionRow.created_at), desc(QuestionRow.id))
            else:
                stmt = stmt.order_by(QuestionRow.created_at.asc(), QuestionRow.id.asc())
            rows = db.execute(stmt).scalars().all()
            return [self._to_question_record(row) for row in rows]

    def transition_question(
        self,
        db: Session,
        *,
        question_id: str,
        expected: QuestionStatus,
        values: dict[str, Any],
    ) -> bool:
        """Write ``values`` only if the question is still in ``expected`` status."""
        result = db.execute(
            update(QuestionRow)
            .where(QuestionRow.public_id == question_id, QuestionRow.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def transition_questions(
        self,
        db: Session,
        *,
        question_ids: list[str],
        expected: QuestionStatus,
        values: dict[str, Any],
    ) -> int:
        result = db.execute(
            update(QuestionRow)
            .where(QuestionRow.public_id.in_(question_ids), QuestionRow.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_questions(
        self,
        db: Session,
        *,
        question_ids: list[str],
        author_id: str,
        status: QuestionStatus,
    ) -> int:
        result = db.execute(
            delete(QuestionRow)
            .where(
                QuestionRow.public_id.in_(question_ids),
                QuestionRow.author_id == author_id,
                QuestionRow.status == status.value,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ledgers

    def get_ledger(self, *, owner: LedgerOwner, owner_id: str) -> dict[LedgerCategory, list[LedgerEntryRecord]]:
        with self._session_factory() as db:
            return load_ledger(db, owner=owner, owner_id=owner_id)
