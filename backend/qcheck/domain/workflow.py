"""Question lifecycle rules and role capabilities.

Everything here is pure: callers pass the current status and the acting
identity, and get back either the target status or one of the core errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from qcheck.core.errors import InvalidStateError, PermissionDeniedError, ValidationError
from qcheck.domain.models import Actor, QuestionStatus, Role


class Capability(str, Enum):
    AUTHOR_QUESTIONS = "author_questions"
    CLAIM_PAPERS = "claim_papers"
    REVIEW_QUESTIONS = "review_questions"
    MANAGE_PAPERS = "manage_papers"
    MANAGE_USERS = "manage_users"
    READ_OWN_LEDGER = "read_own_ledger"
    READ_ANY_LEDGER = "read_any_ledger"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.MAKER: frozenset(
        {Capability.AUTHOR_QUESTIONS, Capability.CLAIM_PAPERS, Capability.READ_OWN_LEDGER}
    ),
    Role.CHECKER: frozenset({Capability.REVIEW_QUESTIONS, Capability.READ_OWN_LEDGER}),
    Role.ADMIN: frozenset(
        {
            Capability.MANAGE_PAPERS,
            Capability.MANAGE_USERS,
            Capability.READ_ANY_LEDGER,
        }
    ),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def ensure_capability(actor: Actor, capability: Capability) -> None:
    if not has_capability(actor.role, capability):
        raise PermissionDeniedError(f"Role '{actor.role.value}' may not {capability.value.replace('_', ' ')}")


class Action(str, Enum):
    SUBMIT = "submit"
    RESUBMIT = "resubmit"
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True)
class Transition:
    source: QuestionStatus
    target: QuestionStatus
    capability: Capability
    author_only: bool


TRANSITIONS: dict[Action, Transition] = {
    Action.SUBMIT: Transition(
        QuestionStatus.DRAFT, QuestionStatus.PENDING, Capability.AUTHOR_QUESTIONS, author_only=True
    ),
    Action.RESUBMIT: Transition(
        QuestionStatus.REJECTED, QuestionStatus.PENDING, Capability.AUTHOR_QUESTIONS, author_only=True
    ),
    Action.APPROVE: Transition(
        QuestionStatus.PENDING, QuestionStatus.APPROVED, Capability.REVIEW_QUESTIONS, author_only=False
    ),
    Action.REJECT: Transition(
        QuestionStatus.PENDING, QuestionStatus.REJECTED, Capability.REVIEW_QUESTIONS, author_only=False
    ),
}


def require_comment(comment: str | None) -> str:
    """Return the stripped rejection comment, or raise if it is blank."""
    cleaned = (comment or "").strip()
    if not cleaned:
        raise ValidationError("A rejection requires a non-empty comment")
    return cleaned


def authorize(action: Action, actor: Actor) -> Transition:
    """Check the role-level permission for an action, independent of any question."""
    transition = TRANSITIONS[action]
    ensure_capability(actor, transition.capability)
    return transition


def plan_transition(
    action: Action,
    *,
    current: QuestionStatus,
    actor: Actor,
    author_id: str,
) -> QuestionStatus:
    transition = authorize(action, actor)
    if transition.author_only and author_id != actor.id:
        raise PermissionDeniedError("Only the question's author may do this")
    if current != transition.source:
        raise InvalidStateError(
            f"Cannot {action.value} a question in status {current.value}; expected {transition.source.value}"
        )
    return transition.target


def review_fields(target: QuestionStatus, *, reviewer_id: str, comment: str = "") -> dict[str, Any]:
    """Column values written alongside a review decision."""
    if target == QuestionStatus.APPROVED:
        return {"status": target.value, "reviewer_id": reviewer_id, "reviewer_comment": ""}
    if target == QuestionStatus.REJECTED:
        return {"status": target.value, "reviewer_id": reviewer_id, "reviewer_comment": require_comment(comment)}
    raise InvalidStateError(f"{target.value} is not a review outcome")


def is_editable(status: QuestionStatus) -> bool:
    return status in (QuestionStatus.DRAFT, QuestionStatus.REJECTED)
