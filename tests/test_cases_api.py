import itertools

import pytest
from bson import ObjectId

from db.collections import ensure_indexes, get_file_collection, get_note_collection

_case_numbers = itertools.count(1)


def case_payload(**overrides):
    payload = {
        "title": "Ahmed vs Province of Punjab",
        "caseNo": f"WP-{next(_case_numbers)}/2025",
        "type": "Writ Petition",
        "court": "Lahore High Court",
        "nextHearing": "2025-06-01T09:00:00Z",
        "partyName": "Ahmed",
        "respondent": "Province of Punjab",
        "lawyer": "Sana Malik",
        "contactNumber": "03001234567",
        "caseYear": 2025,
        "onBehalfOf": "Petitioner",
        "description": "Challenge to land acquisition notice",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def lawyer(register):
    headers, _ = register()
    return headers


def test_trial_user_is_limited_to_two_cases_per_day(client, lawyer):
    for _ in range(2):
        assert client.post("/api/cases", json=case_payload(), headers=lawyer).status_code == 201

    response = client.post("/api/cases", json=case_payload(), headers=lawyer)

    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["usedToday"] == 2
    assert detail["dailyLimit"] == 2
    assert detail["limitType"] == "cases"
    assert len(client.get("/api/cases", headers=lawyer).json()) == 2


def test_admin_is_not_limited(client, admin_headers):
    for _ in range(4):
        assert client.post("/api/cases", json=case_payload(), headers=admin_headers).status_code == 201


def test_duplicate_case_number_is_a_conflict_and_refunds_quota(client, lawyer, run_sync):
    run_sync(ensure_indexes(client.db))
    payload = case_payload()
    assert client.post("/api/cases", json=payload, headers=lawyer).status_code == 201

    duplicate = client.post("/api/cases", json=payload, headers=lawyer)

    assert duplicate.status_code == 409
    # The refunded unit still allows a second case today.
    assert client.post("/api/cases", json=case_payload(), headers=lawyer).status_code == 201


def test_cases_are_private_to_their_owner(client, lawyer, register):
    case_id = client.post("/api/cases", json=case_payload(), headers=lawyer).json()["id"]
    other, _ = register(email="other@example.com")

    assert client.get(f"/api/cases/{case_id}", headers=other).status_code == 404
    assert client.delete(f"/api/cases/{case_id}", headers=other).status_code == 404
    assert client.get("/api/cases", headers=other).json() == []


def test_status_update(client, lawyer):
    case_id = client.post("/api/cases", json=case_payload(), headers=lawyer).json()["id"]

    response = client.patch(f"/api/cases/{case_id}/status", json={"status": "hearing"}, headers=lawyer)

    assert response.status_code == 200
    assert response.json()["status"] == "hearing"


def test_note_and_file_attachments(client, lawyer, uploads_dir):
    case_id = client.post("/api/cases", json=case_payload(), headers=lawyer).json()["id"]

    note = client.post(
        f"/api/cases/{case_id}/notes",
        json={"sectionType": "courtOrders", "title": "Order sheet", "content": "Adjourned"},
        headers=lawyer,
    )
    assert note.status_code == 201, note.text

    upload = client.post(
        f"/api/cases/{case_id}/upload",
        data={"sectionType": "evidence"},
        files=[("files", ("deed.pdf", b"%PDF-1.4 test", "application/pdf"))],
        headers=lawyer,
    )
    assert upload.status_code == 200, upload.text
    file_id = upload.json()[0]["id"]
    stored_files = list(uploads_dir.rglob("*deed.pdf"))
    assert len(stored_files) == 1

    case = client.get(f"/api/cases/{case_id}", headers=lawyer).json()
    assert case["courtOrders"][0]["kind"] == "note"
    assert case["courtOrders"][0]["noteId"] == note.json()["id"]
    assert case["evidence"][0]["fileId"] == file_id

    removed = client.request(
        "DELETE",
        f"/api/cases/{case_id}/items/{file_id}",
        json={"sectionType": "evidence", "itemType": "file"},
        headers=lawyer,
    )
    assert removed.status_code == 200
    assert client.get(f"/api/cases/{case_id}", headers=lawyer).json()["evidence"] == []
    assert not stored_files[0].exists()

    again = client.request(
        "DELETE",
        f"/api/cases/{case_id}/items/{file_id}",
        json={"sectionType": "evidence", "itemType": "file"},
        headers=lawyer,
    )
    assert again.status_code == 404


def test_disallowed_file_type_is_rejected(client, lawyer, uploads_dir):
    case_id = client.post("/api/cases", json=case_payload(), headers=lawyer).json()["id"]

    response = client.post(
        f"/api/cases/{case_id}/upload",
        data={"sectionType": "drafts"},
        files=[("files", ("script.sh", b"echo hi", "text/x-shellscript"))],
        headers=lawyer,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "files"


def test_unknown_section_is_rejected(client, lawyer):
    case_id = client.post("/api/cases", json=case_payload(), headers=lawyer).json()["id"]

    response = client.post(
        f"/api/cases/{case_id}/notes",
        json={"sectionType": "misc", "title": "x"},
        headers=lawyer,
    )

    assert response.status_code == 400


def test_deleting_a_case_removes_its_attachments(client, lawyer, uploads_dir, run_sync):
    case_id = client.post("/api/cases", json=case_payload(), headers=lawyer).json()["id"]
    note_id = client.post(
        f"/api/cases/{case_id}/notes",
        json={"sectionType": "drafts", "title": "Draft plaint"},
        headers=lawyer,
    ).json()["id"]
    file_id = client.post(
        f"/api/cases/{case_id}/upload",
        data={"sectionType": "evidence"},
        files=[("files", ("photo.png", b"\x89PNG", "image/png"))],
        headers=lawyer,
    ).json()[0]["id"]

    assert client.delete(f"/api/cases/{case_id}", headers=lawyer).status_code == 200

    assert run_sync(get_note_collection(client.db).find_one({"_id": ObjectId(note_id)})) is None
    assert run_sync(get_file_collection(client.db).find_one({"_id": ObjectId(file_id)})) is None
    assert list(uploads_dir.rglob("*photo.png")) == []
    assert client.get(f"/api/cases/{case_id}", headers=lawyer).status_code == 404


def test_requests_without_token_are_unauthorized(client):
    assert client.get("/api/cases").status_code == 401


def test_subscription_status_reports_todays_usage(client, lawyer):
    client.post("/api/cases", json=case_payload(), headers=lawyer)

    status = client.get("/api/subscription/status", headers=lawyer).json()

    assert status["subscriptionStatus"] == "trial"
    assert status["isTrialActive"] is True
    usage = {row["limitType"]: row for row in status["usage"]}
    assert usage["cases"]["usedToday"] == 1
    assert usage["cases"]["dailyLimit"] == 2
    assert usage["notes"]["allowed"] is True
