from __future__ import annotations

from qcheck.core.errors import PermissionDeniedError
from qcheck.domain.models import Actor, LedgerCategory, LedgerEntryRecord, LedgerOwner, Role
from qcheck.domain.workflow import Capability, ensure_capability, has_capability
from qcheck.infra.db.store import DatabaseStore

_OWN_LEDGER = {
    Role.MAKER: LedgerOwner.AUTHOR,
    Role.CHECKER: LedgerOwner.REVIEWER,
}


class LedgerQueryService:
    """Read access to performance ledgers. Writes only happen through reviews."""

    def __init__(self, *, store: DatabaseStore):
        self.store = store

    def own_ledger(self, actor: Actor) -> tuple[LedgerOwner, dict[LedgerCategory, list[LedgerEntryRecord]]]:
        ensure_capability(actor, Capability.READ_OWN_LEDGER)
        owner = _OWN_LEDGER.get(actor.role)
        if owner is None:
            raise PermissionDeniedError(f"Role '{actor.role.value}' has no ledger")
        return owner, self.store.get_ledger(owner=owner, owner_id=actor.id)

    def ledger_for(
        self, actor: Actor, *, owner: LedgerOwner, owner_id: str
    ) -> dict[LedgerCategory, list[LedgerEntryRecord]]:
        if owner_id != actor.id or _OWN_LEDGER.get(actor.role) != owner:
            if not has_capability(actor.role, Capability.READ_ANY_LEDGER):
                raise PermissionDeniedError("Not authorized to read this ledger")
        else:
            ensure_capability(actor, Capability.READ_OWN_LEDGER)
        return self.store.get_ledger(owner=owner, owner_id=owner_id)
