"""Per-user performance ledgers.

An entry is keyed by (owner kind, owner id, category, question id) and holds
an occurrence count; each occurrence also gets its own timestamp row.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from qcheck.domain.models import LEDGER_CATEGORIES, LedgerCategory, LedgerEntryRecord, LedgerOwner
from qcheck.infra.db.models import LedgerEntryRow, LedgerOccurrenceRow


class LedgerAppender:
    """Appends review outcomes inside the caller's open transaction.

    Never commits: the review decision's unit of work owns the transaction.
    """

    def append(
        self,
        db: Session,
        *,
        owner: LedgerOwner,
        owner_id: str,
        category: LedgerCategory,
        question_id: str,
        at: datetime,
    ) -> None:
        if category not in LEDGER_CATEGORIES[owner]:
            raise ValueError(f"Category {category.value} is not tracked for {owner.value} ledgers")

        key = (
            LedgerEntryRow.owner_kind == owner.value,
            LedgerEntryRow.owner_id == owner_id,
            LedgerEntryRow.category == category.value,
            LedgerEntryRow.question_id == question_id,
        )
        result = db.execute(
            update(LedgerEntryRow)
            .where(*key)
            .values(count=LedgerEntryRow.count + 1)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount:
            entry_id = db.execute(select(LedgerEntryRow.id).where(*key)).scalar_one()
        else:
            entry = LedgerEntryRow(
                owner_kind=owner.value,
                owner_id=owner_id,
                category=category.value,
                question_id=question_id,
                count=1,
            )
            db.add(entry)
            db.flush()
            entry_id = entry.id

        db.add(LedgerOccurrenceRow(entry_id=entry_id, occurred_at=at))
        db.flush()


def load_ledger(db: Session, *, owner: LedgerOwner, owner_id: str) -> dict[LedgerCategory, list[LedgerEntryRecord]]:
    rows = (
        db.execute(
            select(LedgerEntryRow)
            .options(selectinload(LedgerEntryRow.occurrences))
            .where(LedgerEntryRow.owner_kind == owner.value, LedgerEntryRow.owner_id == owner_id)
            .order_by(LedgerEntryRow.category.asc(), LedgerEntryRow.id.asc())
        )
        .scalars()
        .all()
    )

    grouped: dict[LedgerCategory, list[LedgerEntryRecord]] = defaultdict(list)
    for row in rows:
        category = LedgerCategory(row.category)
        grouped[category].append(
            LedgerEntryRecord(
                category=category,
                question_id=row.question_id,
                count=row.count,
                timestamps=[item.occurred_at for item in row.occurrences],
            )
        )
    return dict(grouped)
