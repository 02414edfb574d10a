from __future__ import annotations

import logging

from qcheck.core.errors import ConflictError
from qcheck.domain.models import Actor, PaperRecord
from qcheck.domain.workflow import Capability, ensure_capability
from qcheck.infra.db.store import DatabaseStore

logger = logging.getLogger(__name__)


class ClaimService:
    """Exclusive, permanent assignment of papers to makers."""

    def __init__(self, *, store: DatabaseStore):
        self.store = store

    def claim(self, paper_id: str, author: Actor) -> PaperRecord:
        ensure_capability(author, Capability.CLAIM_PAPERS)

        with self.store.unit_of_work() as db:
            if not self.store.claim_paper(db, paper_id=paper_id, author_id=author.id):
                logger.info("Claim on paper %s by %s lost: already claimed or missing", paper_id, author.id)
                raise ConflictError(f"Paper {paper_id} is already claimed")
            paper = self.store.find_paper(db, paper_id)

        logger.info("Paper %s claimed by %s", paper_id, author.id)
        return paper

    def list_available(self, actor: Actor) -> list[PaperRecord]:
        ensure_capability(actor, Capability.CLAIM_PAPERS)
        return self.store.list_papers(claimed=False)

    def list_claimed_by(self, actor: Actor) -> list[PaperRecord]:
        ensure_capability(actor, Capability.CLAIM_PAPERS)
        return self.store.list_papers(claimed_by=actor.id)

    def list_claimed(self, actor: Actor) -> list[PaperRecord]:
        ensure_capability(actor, Capability.MANAGE_PAPERS)
        return self.store.list_papers(claimed=True)
