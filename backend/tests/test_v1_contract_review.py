import uuid

from fastapi.testclient import TestClient

from qcheck.api.v1.dependencies import get_store
from qcheck.domain.models import Role
from qcheck.main import app


def _login(client: TestClient, role: Role) -> tuple[str, dict[str, str]]:
    store = get_store()
    email = f"{role.value}-{uuid.uuid4().hex[:8]}@example.com"
    with store.unit_of_work() as db:
        user = store.create_user(db, name=role.value.title(), email=email, role=role)

    resp = client.post("/v1/auth/token", json={"email": email})
    assert resp.status_code == 200
    token = resp.json()["accessToken"]
    return user.user_id, {"Authorization": f"Bearer {token}"}


def _question_payload(**overrides) -> dict:
    payload = {
        "question": {"text": "Which gas is most abundant in Earth's atmosphere?"},
        "options": [
            {"text": "Nitrogen", "isCorrect": True},
            {"text": "Oxygen"},
            {"text": "Argon"},
            {"text": "Carbon dioxide"},
        ],
        "explanation": {"text": "About 78% of dry air is nitrogen."},
        "subject": "Geography",
        "complexity": "Medium",
        "keywords": ["atmosphere"],
    }
    payload.update(overrides)
    return payload


def test_maker_checker_round_trip():
    client = TestClient(app)
    maker_id, maker = _login(client, Role.MAKER)
    checker_id, checker = _login(client, Role.CHECKER)

    created = client.post("/v1/questions", json=_question_payload(), headers=maker)
    assert created.status_code == 201
    question_id = created.json()["questionId"]
    assert created.json()["status"] == "Draft"

    submitted = client.post(f"/v1/questions/{question_id}/submit", headers=maker)
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "Pending"

    pending = client.get("/v1/review/pending", headers=checker)
    assert question_id in [item["questionId"] for item in pending.json()["questions"]]

    blank = client.post(f"/v1/review/questions/{question_id}/reject", json={"comment": ""}, headers=checker)
    assert blank.status_code == 400
    assert blank.json()["error"] == "validation_error"

    rejected = client.post(
        f"/v1/review/questions/{question_id}/reject", json={"comment": "No corrections required"}, headers=checker
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "Rejected"
    assert rejected.json()["reviewerId"] == checker_id

    resubmitted = client.post(f"/v1/questions/{question_id}/resubmit", headers=maker)
    assert resubmitted.json()["status"] == "Pending"

    _, second_checker = _login(client, Role.CHECKER)
    approved = client.post(f"/v1/review/questions/{question_id}/approve", headers=second_checker)
    assert approved.status_code == 200
    assert approved.json()["status"] == "Approved"
    assert approved.json()["reviewerComment"] == ""

    again = client.post(f"/v1/review/questions/{question_id}/approve", headers=second_checker)
    assert again.status_code == 422
    assert again.json()["error"] == "invalid_state"

    ledger = client.get("/v1/me/ledger", headers=checker).json()
    assert ledger["ownerKind"] == "reviewer"
    assert ledger["entries"]["rejected"][question_id]["count"] == 1
    assert ledger["entries"]["falseRejection"][question_id]["count"] == 1

    author_ledger = client.get("/v1/me/ledger", headers=maker).json()
    assert author_ledger["ownerKind"] == "author"
    assert author_ledger["entries"]["accepted"][question_id]["count"] == 1
    assert len(author_ledger["entries"]["accepted"][question_id]["timestamps"]) == 1
    assert maker_id == author_ledger["ownerId"]


def test_bulk_approve_contract():
    client = TestClient(app)
    _, maker = _login(client, Role.MAKER)
    checker_id, checker = _login(client, Role.CHECKER)

    ids = []
    for _ in range(3):
        resp = client.post("/v1/questions", json=_question_payload(submit=True), headers=maker)
        ids.append(resp.json()["questionId"])
    client.post(f"/v1/review/questions/{ids[1]}/approve", headers=checker)

    _, other_checker = _login(client, Role.CHECKER)
    bulk = client.post("/v1/review/bulk-approve", json={"ids": ids}, headers=other_checker)
    assert bulk.status_code == 200
    assert bulk.json()["approvedCount"] == 2
    assert sorted(bulk.json()["questionIds"]) == sorted([ids[0], ids[2]])

    nothing = client.post("/v1/review/bulk-approve", json={"ids": ids}, headers=other_checker)
    assert nothing.status_code == 404
    assert nothing.json()["error"] == "not_found"

    empty = client.post("/v1/review/bulk-approve", json={"ids": []}, headers=other_checker)
    assert empty.status_code == 400


def test_roles_and_tokens_are_enforced():
    client = TestClient(app)
    _, maker = _login(client, Role.MAKER)

    assert client.get("/v1/review/pending").status_code == 401
    assert client.get("/v1/review/pending", headers={"Authorization": "Bearer nope"}).status_code == 401

    forbidden = client.get("/v1/review/pending", headers=maker)
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "permission_denied"

    missing = client.post("/v1/review/questions/q_missing/approve", headers=maker)
    assert missing.status_code == 403


def test_authoring_contract_rules():
    client = TestClient(app)
    _, maker = _login(client, Role.MAKER)
    _, other_maker = _login(client, Role.MAKER)

    too_few = client.post(
        "/v1/questions", json=_question_payload(options=[{"text": "Only", "isCorrect": True}]), headers=maker
    )
    assert too_few.status_code == 400
    assert too_few.json()["error"] == "validation_error"

    draft = client.post("/v1/questions", json=_question_payload(), headers=maker).json()
    edited = client.put(
        f"/v1/questions/{draft['questionId']}", json=_question_payload(subject="Earth Science"), headers=maker
    )
    assert edited.status_code == 200
    assert edited.json()["subject"] == "Earth Science"

    assert client.get(f"/v1/questions/{draft['questionId']}", headers=other_maker).status_code == 403

    submitted = client.post("/v1/questions/submit", json={"ids": [draft["questionId"]]}, headers=maker)
    assert submitted.json()["count"] == 1

    locked = client.put(f"/v1/questions/{draft['questionId']}", json=_question_payload(), headers=maker)
    assert locked.status_code == 422
    assert locked.json()["error"] == "invalid_state"

    listed = client.get("/v1/questions/submitted", headers=maker).json()
    assert [item["questionId"] for item in listed["questions"]] == [draft["questionId"]]


def test_malformed_body_is_a_validation_error_not_invalid_state():
    client = TestClient(app)
    _, maker = _login(client, Role.MAKER)
    _, checker = _login(client, Role.CHECKER)

    malformed = client.post("/v1/review/bulk-approve", json={"ids": "q_1"}, headers=checker)
    assert malformed.status_code == 400
    assert malformed.json()["error"] == "validation_error"
    assert isinstance(malformed.json()["detail"], list)

    missing_field = client.post("/v1/questions", json={"question": {"text": "No subject"}}, headers=maker)
    assert missing_field.status_code == 400
    assert missing_field.json()["error"] == "validation_error"

    draft = client.post("/v1/questions", json=_question_payload(), headers=maker).json()
    invalid_state = client.post(f"/v1/review/questions/{draft['questionId']}/approve", headers=checker)
    assert invalid_state.status_code == 422
    assert invalid_state.json()["error"] == "invalid_state"
    assert invalid_state.status_code != malformed.status_code


def test_response_timestamps_carry_utc_offset():
    client = TestClient(app)
    _, maker = _login(client, Role.MAKER)
    _, checker = _login(client, Role.CHECKER)

    created = client.post("/v1/questions", json=_question_payload(submit=True), headers=maker).json()
    assert created["createdAt"].endswith("+00:00")

    client.post(f"/v1/review/questions/{created['questionId']}/approve", headers=checker)
    ledger = client.get("/v1/me/ledger", headers=checker).json()
    stamps = ledger["entries"]["accepted"][created["questionId"]]["timestamps"]
    assert len(stamps) == 1
    assert stamps[0].endswith("+00:00")
