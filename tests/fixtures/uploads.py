"""Helpers that drive the presign -> upload -> finalize handshake through the API."""
from fastapi import status
from fastapi.testclient import TestClient

from uploads_api.adapters.storage import ObjectStore

TEST_FILE_NAME = "notes.txt"
TEST_FILE_CONTENT = b"Hello, world!"
TEST_FILE_CONTENT_TYPE = "text/plain"


def presign(client: TestClient, headers: dict, filename=TEST_FILE_NAME, mime_type=TEST_FILE_CONTENT_TYPE) -> dict:
    response = client.post(
        "/files/presign",
        json={"filename": filename, "mimeType": mime_type},
        headers=headers,
    )
    assert response.status_code == status.HTTP_200_OK
    return response.json()


def upload_and_finalize(
    client: TestClient,
    headers: dict,
    object_store: ObjectStore,
    content: bytes = TEST_FILE_CONTENT,
    filename: str = TEST_FILE_NAME,
    mime_type: str = TEST_FILE_CONTENT_TYPE,
) -> dict:
    """Presign, put the bytes where a client would, then finalize. Returns the finalize body."""
    presigned = presign(client, headers, filename=filename, mime_type=mime_type)
    # Stands in for the client's PUT to the presigned URL
    object_store.put(presigned["tempPath"], content, content_type=mime_type)
    response = client.post(
        "/files/finalize",
        json={
            "fileId": presigned["fileId"],
            "tempPath": presigned["tempPath"],
            "filename": filename,
            "mimeType": mime_type,
            "sizeBytes": len(content),
        },
        headers=headers,
    )
    assert response.status_code == status.HTTP_200_OK
    return response.json()
