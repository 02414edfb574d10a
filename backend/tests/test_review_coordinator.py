import threading

import pytest
from sqlalchemy.exc import OperationalError

from qcheck.application.authoring import AuthoringService
from qcheck.application.review import ReviewCoordinator, ReviewQueue
from qcheck.core.errors import InvalidStateError, NotFoundError, PermissionDeniedError, StoreError, ValidationError
from qcheck.domain.models import NO_CORRECTIONS_REQUIRED, LedgerCategory, LedgerOwner, QuestionStatus, Role
from qcheck.infra.db.ledger import LedgerAppender
from qcheck.infra.db.store import DatabaseStore
from tests.factories import make_actor, make_draft


class FailingAppender(LedgerAppender):
    """Fails on the n-th append, after the status update has been issued."""

    def __init__(self, fail_on: int = 1):
        self.calls = 0
        self.fail_on = fail_on

    def append(self, db, **kwargs):
        self.calls += 1
        if self.calls >= self.fail_on:
            raise OperationalError("INSERT INTO ledger_entries", {}, Exception("disk I/O error"))
        super().append(db, **kwargs)


@pytest.fixture
def people(store):
    return {
        "maker": make_actor(store, Role.MAKER),
        "checker_a": make_actor(store, Role.CHECKER, "checker-a"),
        "checker_b": make_actor(store, Role.CHECKER, "checker-b"),
    }


def _pending(store, storage, maker, **overrides):
    return AuthoringService(store=store, storage=storage).create(maker, make_draft(**overrides), submit=True)


def _ledger(store, owner, owner_id, category):
    return {
        item.question_id: item for item in store.get_ledger(owner=owner, owner_id=owner_id).get(category, [])
    }


def test_approve_sets_status_and_writes_both_ledgers(store, storage, people):
    question = _pending(store, storage, people["maker"])

    approved = ReviewCoordinator(store=store).approve(question.question_id, people["checker_a"])

    assert approved.status == QuestionStatus.APPROVED
    assert approved.reviewer_id == people["checker_a"].id
    assert approved.reviewer_comment == ""
    reviewer = _ledger(store, LedgerOwner.REVIEWER, people["checker_a"].id, LedgerCategory.ACCEPTED)
    author = _ledger(store, LedgerOwner.AUTHOR, people["maker"].id, LedgerCategory.ACCEPTED)
    assert reviewer[question.question_id].count == 1
    assert author[question.question_id].count == 1


def test_reject_requires_comment_and_leaves_question_untouched(store, storage, people):
    question = _pending(store, storage, people["maker"])
    coordinator = ReviewCoordinator(store=store)

    with pytest.raises(ValidationError):
        coordinator.reject(question.question_id, people["checker_a"], "")
    with pytest.raises(ValidationError):
        coordinator.reject(question.question_id, people["checker_a"], "   ")

    unchanged = store.get_question(question.question_id)
    assert unchanged.status == QuestionStatus.PENDING
    assert unchanged.reviewer_id is None
    assert store.get_ledger(owner=LedgerOwner.REVIEWER, owner_id=people["checker_a"].id) == {}


def test_reject_records_comment_and_rejected_entries(store, storage, people):
    question = _pending(store, storage, people["maker"])

    rejected = ReviewCoordinator(store=store).reject(question.question_id, people["checker_a"], "Option C is ambiguous")

    assert rejected.status == QuestionStatus.REJECTED
    assert rejected.reviewer_comment == "Option C is ambiguous"
    assert rejected.reviewer_id == people["checker_a"].id
    assert question.question_id in _ledger(store, LedgerOwner.REVIEWER, people["checker_a"].id, LedgerCategory.REJECTED)
    assert question.question_id in _ledger(store, LedgerOwner.AUTHOR, people["maker"].id, LedgerCategory.REJECTED)


def test_approve_after_no_corrections_rejection_logs_false_rejection(store, storage, people):
    authoring = AuthoringService(store=store, storage=storage)
    coordinator = ReviewCoordinator(store=store)
    question = _pending(store, storage, people["maker"])

    coordinator.reject(question.question_id, people["checker_a"], NO_CORRECTIONS_REQUIRED)
    resubmitted = authoring.resubmit(question.question_id, people["maker"])
    assert resubmitted.reviewer_id == people["checker_a"].id
    assert resubmitted.reviewer_comment == NO_CORRECTIONS_REQUIRED

    coordinator.approve(question.question_id, people["checker_b"])

    false_rejections = _ledger(store, LedgerOwner.REVIEWER, people["checker_a"].id, LedgerCategory.FALSE_REJECTION)
    assert list(false_rejections) == [question.question_id]
    assert false_rejections[question.question_id].count == 1
    assert _ledger(store, LedgerOwner.REVIEWER, people["checker_b"].id, LedgerCategory.FALSE_REJECTION) == {}


def test_approve_after_ordinary_rejection_logs_no_false_rejection(store, storage, people):
    authoring = AuthoringService(store=store, storage=storage)
    coordinator = ReviewCoordinator(store=store)
    question = _pending(store, storage, people["maker"])

    coordinator.reject(question.question_id, people["checker_a"], "Explanation is missing a step")
    authoring.resubmit(question.question_id, people["maker"])
    coordinator.approve(question.question_id, people["checker_b"])

    assert _ledger(store, LedgerOwner.REVIEWER, people["checker_a"].id, LedgerCategory.FALSE_REJECTION) == {}


def test_ledger_failure_rolls_back_the_status_change(store, storage, people):
    question = _pending(store, storage, people["maker"])
    coordinator = ReviewCoordinator(store=store, appender=FailingAppender(fail_on=2))

    with pytest.raises(StoreError):
        coordinator.approve(question.question_id, people["checker_a"])

    unchanged = store.get_question(question.question_id)
    assert unchanged.status == QuestionStatus.PENDING
    assert unchanged.reviewer_id is None
    assert store.get_ledger(owner=LedgerOwner.REVIEWER, owner_id=people["checker_a"].id) == {}


def test_approve_errors(store, storage, people):
    coordinator = ReviewCoordinator(store=store)
    draft = AuthoringService(store=store, storage=storage).create(people["maker"], make_draft())

    with pytest.raises(NotFoundError):
        coordinator.approve("q_missing", people["checker_a"])
    with pytest.raises(InvalidStateError):
        coordinator.approve(draft.question_id, people["checker_a"])
    with pytest.raises(PermissionDeniedError):
        coordinator.approve(draft.question_id, people["maker"])


def test_second_review_of_same_question_is_rejected(store, storage, people):
    question = _pending(store, storage, people["maker"])
    coordinator = ReviewCoordinator(store=store)

    coordinator.approve(question.question_id, people["checker_a"])
    with pytest.raises(InvalidStateError):
        coordinator.approve(question.question_id, people["checker_b"])

    assert _ledger(store, LedgerOwner.REVIEWER, people["checker_b"].id, LedgerCategory.ACCEPTED) == {}


def test_bulk_approve_skips_non_pending(store, storage, people):
    coordinator = ReviewCoordinator(store=store)
    q1 = _pending(store, storage, people["maker"])
    q2 = _pending(store, storage, people["maker"])
    q3 = _pending(store, storage, people["maker"])
    coordinator.approve(q2.question_id, people["checker_a"])

    result = coordinator.bulk_approve([q1.question_id, q2.question_id, q3.question_id], people["checker_b"])

    assert result.approved_count == 2
    assert sorted(result.question_ids) == sorted([q1.question_id, q3.question_id])
    assert store.get_question(q2.question_id).reviewer_id == people["checker_a"].id
    accepted = _ledger(store, LedgerOwner.REVIEWER, people["checker_b"].id, LedgerCategory.ACCEPTED)
    assert sorted(accepted) == sorted([q1.question_id, q3.question_id])
    for question_id in (q1.question_id, q3.question_id):
        row = store.get_question(question_id)
        assert row.status == QuestionStatus.APPROVED
        assert row.reviewer_comment == ""


def test_bulk_approve_validation_and_empty_match(store, storage, people):
    coordinator = ReviewCoordinator(store=store)
    draft = AuthoringService(store=store, storage=storage).create(people["maker"], make_draft())

    with pytest.raises(ValidationError):
        coordinator.bulk_approve([], people["checker_a"])
    with pytest.raises(NotFoundError):
        coordinator.bulk_approve(["q_missing", draft.question_id], people["checker_a"])


def test_bulk_approve_logs_false_rejections_per_question(store, storage, people):
    authoring = AuthoringService(store=store, storage=storage)
    coordinator = ReviewCoordinator(store=store)
    flagged = _pending(store, storage, people["maker"])
    plain = _pending(store, storage, people["maker"])
    coordinator.reject(flagged.question_id, people["checker_a"], NO_CORRECTIONS_REQUIRED)
    authoring.resubmit(flagged.question_id, people["maker"])

    coordinator.bulk_approve([flagged.question_id, plain.question_id], people["checker_b"])

    false_rejections = _ledger(store, LedgerOwner.REVIEWER, people["checker_a"].id, LedgerCategory.FALSE_REJECTION)
    assert list(false_rejections) == [flagged.question_id]


def test_bulk_approve_is_all_or_nothing(store, storage, people):
    q1 = _pending(store, storage, people["maker"])
    q2 = _pending(store, storage, people["maker"])
    coordinator = ReviewCoordinator(store=store, appender=FailingAppender(fail_on=3))

    with pytest.raises(StoreError):
        coordinator.bulk_approve([q1.question_id, q2.question_id], people["checker_a"])

    assert store.get_question(q1.question_id).status == QuestionStatus.PENDING
    assert store.get_question(q2.question_id).status == QuestionStatus.PENDING


def test_bulk_approve_limit(store, people):
    coordinator = ReviewCoordinator(store=store, bulk_limit=2)
    with pytest.raises(ValidationError):
        coordinator.bulk_approve(["q_1", "q_2", "q_3"], people["checker_a"])


def test_comment_invariant_holds_after_mixed_reviews(store, storage, people):
    coordinator = ReviewCoordinator(store=store)
    questions = [_pending(store, storage, people["maker"]) for _ in range(4)]
    coordinator.approve(questions[0].question_id, people["checker_a"])
    coordinator.reject(questions[1].question_id, people["checker_a"], "Needs a diagram")
    coordinator.reject(questions[2].question_id, people["checker_b"], NO_CORRECTIONS_REQUIRED)
    AuthoringService(store=store, storage=storage).resubmit(questions[2].question_id, people["maker"])
    coordinator.bulk_approve([questions[2].question_id, questions[3].question_id], people["checker_a"])

    for row in store.list_questions():
        if row.status == QuestionStatus.APPROVED:
            assert row.reviewer_comment == ""
        if row.status == QuestionStatus.REJECTED:
            assert row.reviewer_comment != ""


def test_review_queue_lists(store, storage, people):
    queue = ReviewQueue(store=store)
    first = _pending(store, storage, people["maker"])
    second = _pending(store, storage, people["maker"])
    ReviewCoordinator(store=store).approve(first.question_id, people["checker_a"])

    assert [item.question_id for item in queue.pending(people["checker_b"])] == [second.question_id]
    assert [item.question_id for item in queue.reviewed(people["checker_b"])] == [first.question_id]
    with pytest.raises(PermissionDeniedError):
        queue.pending(people["maker"])


class RecordingAppender(LedgerAppender):
    def __init__(self):
        self.categories: list[LedgerCategory] = []

    def append(self, db, **kwargs):
        self.categories.append(kwargs["category"])
        super().append(db, **kwargs)


class LosingStore(DatabaseStore):
    """Another reviewer always gets to the status swap first."""

    def transition_question(self, db, **kwargs) -> bool:
        return False


def test_lost_approve_race_writes_no_ledger_rows(store, storage, people):
    authoring = AuthoringService(store=store, storage=storage)
    question = _pending(store, storage, people["maker"])
    ReviewCoordinator(store=store).reject(question.question_id, people["checker_a"], NO_CORRECTIONS_REQUIRED)
    authoring.resubmit(question.question_id, people["maker"])

    appender = RecordingAppender()
    losing = LosingStore(store._session_factory)
    with pytest.raises(InvalidStateError):
        ReviewCoordinator(store=losing, appender=appender).approve(question.question_id, people["checker_b"])

    assert appender.categories == []
    assert _ledger(store, LedgerOwner.REVIEWER, people["checker_a"].id, LedgerCategory.FALSE_REJECTION) == {}
    assert store.get_question(question.question_id).status == QuestionStatus.PENDING


def test_concurrent_approvals_have_exactly_one_winner(store, storage, people):
    authoring = AuthoringService(store=store, storage=storage)
    question = _pending(store, storage, people["maker"])
    ReviewCoordinator(store=store).reject(question.question_id, people["checker_a"], NO_CORRECTIONS_REQUIRED)
    authoring.resubmit(question.question_id, people["maker"])

    reviewers = [people["checker_b"], make_actor(store, Role.CHECKER, "checker-c")]
    coordinator = ReviewCoordinator(store=store)
    barrier = threading.Barrier(len(reviewers))
    winners: list[str] = []
    losers: list[str] = []
    unexpected: list[BaseException] = []
    lock = threading.Lock()

    def attempt(reviewer):
        barrier.wait()
        try:
            coordinator.approve(question.question_id, reviewer)
        except InvalidStateError:
            with lock:
                losers.append(reviewer.id)
        except Exception as exc:  # pragma: no cover
            with lock:
                unexpected.append(exc)
        else:
            with lock:
                winners.append(reviewer.id)

    threads = [threading.Thread(target=attempt, args=(reviewer,)) for reviewer in reviewers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert unexpected == []
    assert len(winners) == 1
    assert len(losers) == 1
    assert store.get_question(question.question_id).reviewer_id == winners[0]

    accepted = _ledger(store, LedgerOwner.AUTHOR, people["maker"].id, LedgerCategory.ACCEPTED)
    assert accepted[question.question_id].count == 1
    assert _ledger(store, LedgerOwner.REVIEWER, losers[0], LedgerCategory.ACCEPTED) == {}
    false_rejections = _ledger(store, LedgerOwner.REVIEWER, people["checker_a"].id, LedgerCategory.FALSE_REJECTION)
    assert false_rejections[question.question_id].count == 1
