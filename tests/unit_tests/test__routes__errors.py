from datetime import timedelta

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from database.schemas import FileStatus
from tests.consts import TEAM_ID
from tests.fixtures.uploads import upload_and_finalize
from uploads_api.auth import create_access_token
from uploads_api.exceptions import QueueError

VALID_FINALIZE = {
    "fileId": "a1b2",
    "tempPath": f"temp/{TEAM_ID}/a1b2/notes.txt",
    "filename": "notes.txt",
    "mimeType": "text/plain",
    "sizeBytes": 13,
}


@pytest.mark.parametrize(
    "method, path",
    [
        ("post", "/files/presign"),
        ("post", "/files/finalize"),
        ("get", "/files"),
        ("get", "/files/1"),
        ("delete", "/files/1"),
        ("post", "/files/1/requeue"),
    ],
)
def test_requires_bearer_token(client: TestClient, method, path):
    response = client.request(method, path, json={})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_rejects_bad_tokens(client: TestClient, settings):
    expired = create_access_token(settings, user_id=1, team_id=1, role="team", expires_in=timedelta(seconds=-10))

    for token in ("not-a-jwt", expired):
        response = client.get("/files", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"filename": "photo.png"},
        {"mimeType": "image/png"},
        {"filename": "../up.png", "mimeType": "image/png"},
    ],
)
def test_presign_bad_request(client: TestClient, team_headers, body):
    response = client.post("/files/presign", json=body, headers=team_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.parametrize(
    "missing",
    ["fileId", "tempPath", "filename", "mimeType", "sizeBytes"],
)
def test_finalize_missing_field(client: TestClient, team_headers, record_store, missing):
    body = {k: v for k, v in VALID_FINALIZE.items() if k != missing}

    response = client.post("/files/finalize", json=body, headers=team_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert record_store.list_files() == []


def test_finalize_non_positive_size(client: TestClient, team_headers):
    body = {**VALID_FINALIZE, "sizeBytes": 0}
    response = client.post("/files/finalize", json=body, headers=team_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_finalize_wrong_type(client: TestClient, team_headers):
    body = {**VALID_FINALIZE, "sizeBytes": "lots"}
    response = client.post("/files/finalize", json=body, headers=team_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_overlong_filename_is_rejected_before_recording(client: TestClient, team_headers, record_store):
    filename = "a" * 252 + ".png"

    presigned = client.post("/files/presign", json={"filename": filename, "mimeType": "image/png"}, headers=team_headers)
    finalized = client.post(
        "/files/finalize",
        json={**VALID_FINALIZE, "filename": filename, "tempPath": f"temp/{TEAM_ID}/a1b2/{filename}"},
        headers=team_headers,
    )

    assert presigned.status_code == status.HTTP_400_BAD_REQUEST
    assert finalized.status_code == status.HTTP_400_BAD_REQUEST
    assert record_store.list_files() == []
    listing = client.get("/files", headers=team_headers)
    assert listing.status_code == status.HTTP_200_OK
    assert listing.json()["files"] == []


def test_finalize_queue_failure(client: TestClient, team_headers, record_store, monkeypatch):
    async def queue_down(message):
        raise QueueError("queue unavailable")

    monkeypatch.setattr(client.app.state.queue, "add_task", queue_down)

    response = client.post("/files/finalize", json=VALID_FINALIZE, headers=team_headers)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"detail": "Failed to queue file for processing"}
    [record] = record_store.list_files()
    assert record.status == FileStatus.UPLOADED


def test_get_missing_file(client: TestClient, team_headers):
    response = client.get("/files/999", headers=team_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_get_other_teams_file(client: TestClient, team_headers, other_team_headers, admin_headers, object_store):
    body = upload_and_finalize(client, team_headers, object_store)

    response = client.get(f"/files/{body['fileId']}", headers=other_team_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.get(f"/files/{body['fileId']}", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK


def test_list_is_scoped_to_team(client: TestClient, team_headers, other_team_headers, admin_headers, object_store):
    mine = upload_and_finalize(client, team_headers, object_store, filename="mine.txt")
    theirs = upload_and_finalize(client, other_team_headers, object_store, filename="theirs.txt")

    def listed(headers):
        return {f["id"] for f in client.get("/files", headers=headers).json()["files"]}

    assert listed(team_headers) == {mine["fileId"]}
    assert listed(other_team_headers) == {theirs["fileId"]}
    assert listed(admin_headers) == {mine["fileId"], theirs["fileId"]}


@pytest.mark.parametrize("limit", [0, 101])
def test_list_limit_out_of_range(client: TestClient, team_headers, limit):
    response = client.get("/files", params={"limit": limit}, headers=team_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_list_unknown_status(client: TestClient, team_headers):
    response = client.get("/files", params={"status": "LOST"}, headers=team_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_teammate_cannot_delete(client: TestClient, team_headers, teammate_headers, admin_headers, object_store):
    body = upload_and_finalize(client, team_headers, object_store)

    response = client.delete(f"/files/{body['fileId']}", headers=teammate_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"detail": "Forbidden - You can only delete your own files"}

    response = client.delete(f"/files/{body['fileId']}", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK


def test_delete_missing_file(client: TestClient, team_headers):
    response = client.delete("/files/999", headers=team_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_requeue_is_admin_only(client: TestClient, team_headers, object_store):
    body = upload_and_finalize(client, team_headers, object_store)
    response = client.post(f"/files/{body['fileId']}/requeue", headers=team_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_requeue_errors(client: TestClient, team_headers, admin_headers, object_store, record_store):
    response = client.post("/files/999/requeue", headers=admin_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND

    body = upload_and_finalize(client, team_headers, object_store)
    record_store.mark_done(body["fileId"], "files/1/1/notes.txt", "https://files.example.com/files/1/1/notes.txt", 13)
    response = client.post(f"/files/{body['fileId']}/requeue", headers=admin_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_health_reports_degraded_component(client: TestClient, monkeypatch):
    monkeypatch.setattr(client.app.state.record_store, "ping", lambda: False)

    body = client.get("/health").json()

    assert body["status"] == "degraded"
    assert body["components"]["database"] == "unavailable"
    assert body["ready"] is False


def test_unhandled_error_is_a_500(client: TestClient, team_headers, monkeypatch):
    def explode(**kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(client.app.state.record_store, "list_files", explode)

    response = client.get("/files", headers=team_headers)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"detail": "Internal server error"}
