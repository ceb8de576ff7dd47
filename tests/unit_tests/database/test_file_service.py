import pytest

from database.file_service import FileRecordService
from database.local import init_db
from database.schemas import FileStatus


@pytest.fixture
def store(tmp_path) -> FileRecordService:
    db_path = str(tmp_path / "files.db")
    init_db(db_path)
    return FileRecordService(db_path)


def _create(store: FileRecordService, team_id: int = 1, user_id: int = 10, filename: str = "photo.png"):
    return store.create_file(
        team_id=team_id,
        user_id=user_id,
        filename=filename,
        mime_type="image/png",
        size_bytes=500000,
        original_path=f"temp/{team_id}/abc/{filename}",
    )


def test_create_file_starts_uploaded(store):
    record = _create(store)

    assert record.id > 0
    assert record.status == FileStatus.UPLOADED
    assert record.original_filename == "photo.png"
    assert record.original_path == "temp/1/abc/photo.png"
    assert record.final_path is None
    assert record.direct_link is None
    assert store.get_file(record.id) == record


def test_get_missing_file_returns_none(store):
    assert store.get_file(999) is None


def test_list_files_filters_by_team_and_status_newest_first(store):
    first = _create(store, team_id=1, filename="a.png")
    second = _create(store, team_id=1, filename="b.png")
    _create(store, team_id=2, filename="c.png")
    store.update_status(first.id, FileStatus.FAILED)

    team_files = store.list_files(team_id=1)
    assert [record.id for record in team_files] == [second.id, first.id]

    assert len(store.list_files()) == 3
    assert [record.id for record in store.list_files(status=FileStatus.FAILED)] == [first.id]
    assert len(store.list_files(limit=2)) == 2


def test_mark_done_sets_final_fields(store):
    record = _create(store)

    assert store.mark_done(record.id, "files/1/1/photo.webp", "https://cdn/files/1/1/photo.webp", 1234)

    done = store.get_file(record.id)
    assert done.status == FileStatus.DONE
    assert done.final_path == "files/1/1/photo.webp"
    assert done.direct_link == "https://cdn/files/1/1/photo.webp"
    assert done.processed_size_bytes == 1234


def test_update_status_clears_final_fields(store):
    record = _create(store)
    store.mark_done(record.id, "files/1/1/photo.webp", "https://cdn/x", 1)

    store.update_status(record.id, FileStatus.UPLOADED)

    updated = store.get_file(record.id)
    assert updated.status == FileStatus.UPLOADED
    assert updated.final_path is None
    assert updated.direct_link is None


def test_update_status_refuses_done(store):
    record = _create(store)
    with pytest.raises(ValueError):
        store.update_status(record.id, FileStatus.DONE)


def test_update_status_of_missing_record_returns_false(store):
    assert store.update_status(42, FileStatus.PROCESSING) is False


def test_processing_logs_are_ordered_by_attempt(store):
    record = _create(store)
    store.add_processing_log(record.id, 1, FileStatus.PROCESSING)
    store.add_processing_log(record.id, 1, FileStatus.FAILED, "decode error")
    store.add_processing_log(record.id, 2, FileStatus.PROCESSING)
    store.add_processing_log(record.id, 2, FileStatus.DONE)

    logs = store.get_processing_logs(record.id)

    assert [(log.attempt, log.status) for log in logs] == [
        (1, FileStatus.PROCESSING),
        (1, FileStatus.FAILED),
        (2, FileStatus.PROCESSING),
        (2, FileStatus.DONE),
    ]
    assert logs[1].error_message == "decode error"


def test_processing_log_for_missing_record_is_kept(store):
    store.add_processing_log(77, 1, FileStatus.FAILED, "File record 77 not found")
    assert len(store.get_processing_logs(77)) == 1


def test_delete_file_removes_record_and_logs(store):
    record = _create(store)
    store.add_processing_log(record.id, 1, FileStatus.PROCESSING)

    assert store.delete_file(record.id) is True

    assert store.get_file(record.id) is None
    assert store.get_processing_logs(record.id) == []
    assert store.delete_file(record.id) is False


def test_ping(store):
    assert store.ping() is True
