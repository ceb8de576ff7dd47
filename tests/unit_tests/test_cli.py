import asyncio

import pytest
from click.testing import CliRunner

from database.file_service import FileRecordService
from database.local import init_db
from database.schemas import FileStatus
from file_workers.cli import cli as worker_cli
from tests.consts import TEAM_ID, TEAM_USER_ID, TEST_JWT_SECRET
from uploads_api.adapters.queue import LocalQueue
from uploads_api.auth import decode_token
from uploads_api.cli import cli as api_cli
from uploads_api.config.settings import get_settings


@pytest.fixture
def cli_env(point_away_from_aws, monkeypatch, tmp_path):
    """Run CLI commands in local-dev mode against a temp directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DEPLOYMENT_MODE", "local-dev")
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "files.db"))
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "storage"))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def test_issue_token(cli_env):
    result = CliRunner().invoke(
        api_cli, ["issue-token", "--user-id", "10", "--team-id", "1", "--username", "tim"]
    )

    assert result.exit_code == 0, result.output
    identity = decode_token(get_settings(), result.output.strip())
    assert identity.user_id == 10
    assert identity.team_id == 1
    assert identity.role == "team"
    assert identity.username == "tim"


def test_issue_token_rejects_unknown_role(cli_env):
    result = CliRunner().invoke(api_cli, ["issue-token", "--user-id", "1", "--role", "root"])
    assert result.exit_code != 0


def test_show_config(cli_env):
    result = CliRunner().invoke(api_cli, ["show-config"])

    assert result.exit_code == 0, result.output
    assert "Deployment Mode: local-dev" in result.output
    assert f"Database: {cli_env / 'files.db'}" in result.output


def test_init_db(cli_env):
    result = CliRunner().invoke(api_cli, ["init-db"])

    assert result.exit_code == 0, result.output
    assert (cli_env / "files.db").exists()


def test_requeue_failed_file(cli_env):
    db_path = str(cli_env / "files.db")
    init_db(db_path)
    store = FileRecordService(db_path)
    record = store.create_file(
        team_id=TEAM_ID,
        user_id=TEAM_USER_ID,
        filename="notes.txt",
        mime_type="text/plain",
        size_bytes=5,
        original_path=f"temp/{TEAM_ID}/token/notes.txt",
        status=FileStatus.FAILED,
    )

    result = CliRunner().invoke(api_cli, ["requeue", str(record.id)])

    assert result.exit_code == 0, result.output
    assert store.get_file(record.id).status == FileStatus.UPLOADED
    job = asyncio.run(LocalQueue(cli_env / "storage" / "queue_data").get_task())
    assert job.message.file_id == record.id


def test_requeue_missing_file(cli_env):
    result = CliRunner().invoke(api_cli, ["requeue", "999"])

    assert result.exit_code == 1
    assert "File 999 not found" in result.output


def test_show_worker_config(cli_env):
    result = CliRunner().invoke(worker_cli, ["show-worker-config"])

    assert result.exit_code == 0, result.output
    assert "Max Attempts: 3" in result.output
    assert "image: ImageTransform" in result.output
    assert "pdf: decline_pdf" in result.output
    assert "archive: decline_archive" in result.output
    assert "other: passthrough" in result.output
