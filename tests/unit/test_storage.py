"""Tests for workspace storage."""

import json
import logging
import uuid
from pathlib import Path

import pytest

from rox_client.errors import ConfigurationError, PersistenceError
from rox_client.storage import load_cache, resolve_run_uid, save_payload, server_dir


def write_cache(workspace: Path, content: str) -> Path:
    path = server_dir(workspace, "dev") / "cache.json"
    path.parent.mkdir(parents=True)
    path.write_text(content)
    return path


class TestResolveRunUid:
    """Tests for resolve_run_uid."""

    def test_prefers_environment(self, tmp_path: Path) -> None:
        """ROX_TEST_RUN_UID wins over the workspace file."""
        (tmp_path / "uid").write_text("from-file")

        assert resolve_run_uid({"ROX_TEST_RUN_UID": "from-env"}, tmp_path) == "from-env"

    def test_reads_workspace_file(self, tmp_path: Path) -> None:
        """Reads the uid file in the workspace."""
        (tmp_path / "uid").write_text("from-file\n")

        assert resolve_run_uid({}, tmp_path) == "from-file"

    def test_rejects_empty_workspace_file(self, tmp_path: Path) -> None:
        """An empty uid file is an error."""
        (tmp_path / "uid").write_text("")

        with pytest.raises(PersistenceError, match="UID file"):
            resolve_run_uid({}, tmp_path)

    @pytest.mark.parametrize("with_workspace", [True, False])
    def test_generates_uuid(self, tmp_path: Path, with_workspace: bool) -> None:
        """Generates a UUID when nothing else is available."""
        uid = resolve_run_uid({}, tmp_path if with_workspace else None)

        assert uuid.UUID(uid).version == 4


class TestLoadCache:
    """Tests for load_cache."""

    def test_requires_workspace(self) -> None:
        """The cache cannot be located without a workspace."""
        with pytest.raises(ConfigurationError, match="missing workspace"):
            load_cache(None, "dev", "p1")

    def test_requires_api_id(self, tmp_path: Path) -> None:
        """The cache is namespaced by project apiId."""
        with pytest.raises(ConfigurationError, match="missing apiId"):
            load_cache(tmp_path, "dev", None)

    def test_missing_file_is_empty_cache(self, tmp_path: Path) -> None:
        """No cache file means no cached data."""
        assert load_cache(tmp_path, "dev", "p1") == {}

    def test_returns_project_entry(self, tmp_path: Path) -> None:
        """Returns the data stored under the project apiId."""
        write_cache(tmp_path, json.dumps({"p1": {"last": "x"}, "p2": {"last": "y"}}))

        assert load_cache(tmp_path, "dev", "p1") == {"last": "x"}

    def test_rejects_invalid_json(self, tmp_path: Path) -> None:
        """An undecodable cache file is an error."""
        write_cache(tmp_path, "{not json")

        with pytest.raises(PersistenceError, match="unable to decode JSON"):
            load_cache(tmp_path, "dev", "p1")

    def test_rejects_non_mapping(self, tmp_path: Path) -> None:
        """The cache document must be a mapping."""
        write_cache(tmp_path, "[1, 2]")

        with pytest.raises(PersistenceError, match="not a JSON object"):
            load_cache(tmp_path, "dev", "p1")

    @pytest.mark.parametrize("content", [{}, {"p1": [1, 2]}, {"p1": "text"}])
    def test_ignores_missing_or_malformed_entry(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture, content: object
    ) -> None:
        """A missing or malformed project entry only logs a warning."""
        write_cache(tmp_path, json.dumps(content))

        with caplog.at_level(logging.WARNING):
            assert load_cache(tmp_path, "dev", "p1") == {}

        assert "no existing cache data for this project." in caplog.text


class TestSavePayload:
    """Tests for save_payload."""

    def test_creates_directories_and_writes_file(self, tmp_path: Path) -> None:
        """Writes payload.json in the server directory."""
        path = save_payload(tmp_path, "dev", '{"u": "1"}')

        assert path == tmp_path / "pytest" / "servers" / "dev" / "payload.json"
        assert path.read_text() == '{"u": "1"}'

    def test_overwrites_previous_payload(self, tmp_path: Path) -> None:
        """A new payload replaces the previous one."""
        save_payload(tmp_path, "dev", "first")
        path = save_payload(tmp_path, "dev", "second")

        assert path.read_text() == "second"

    def test_reports_unwritable_workspace(self, tmp_path: Path) -> None:
        """Failure to write is a PersistenceError."""
        workspace = tmp_path / "file"
        workspace.write_text("not a directory")

        with pytest.raises(PersistenceError, match="unable to save payload"):
            save_payload(workspace, "dev", "{}")
