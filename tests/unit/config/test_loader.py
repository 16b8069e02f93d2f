"""Tests for configuration loading."""

import logging
from pathlib import Path

import pytest

from rox_client.config.loader import (
    FileConfigSource,
    first_of,
    load_config,
    load_document,
    parse_bool,
    resolve_home,
)
from rox_client.config.merge import MapNode
from rox_client.errors import ConfigurationError
from rox_client.testing.sources import InMemoryConfigSource

USER_CONFIG = """
servers:
  dev:
    apiUrl: "http://rox.test/api"
    apiKeyId: "key-id"
    apiKeySecret: "key-secret"
server: dev
payload:
  save: false
project:
  tags: [user]
"""

PROJECT_CONFIG = """
project:
  apiId: "p1"
  version: 1.0
  tags: [project]
workspace: /tmp/rox
"""


@pytest.mark.parametrize("value", ["1", "true", "TRUE", "True", "t", "T", " t "])
def test_parse_bool_accepts_permissive_true(value: str) -> None:
    """Accepts 1, true and t in any case."""
    assert parse_bool(value) is True


@pytest.mark.parametrize("value", ["0", "false", "yes", "on", "", "tru"])
def test_parse_bool_rejects_other_values(value: str) -> None:
    """Everything else is false."""
    assert parse_bool(value) is False


def test_first_of_short_circuits_on_first_success() -> None:
    """Later loaders are not evaluated once one succeeds."""
    calls: list[str] = []

    def failing() -> str | ConfigurationError:
        calls.append("failing")
        return ConfigurationError("nope")

    def succeeding() -> str | ConfigurationError:
        calls.append("succeeding")
        return "value"

    def never() -> str | ConfigurationError:
        calls.append("never")
        return "other"

    assert first_of(failing, succeeding, never) == "value"
    assert calls == ["failing", "succeeding"]


def test_first_of_returns_last_error() -> None:
    """Returns the last error when every loader fails."""
    result = first_of(
        lambda: ConfigurationError("first"), lambda: ConfigurationError("second")
    )

    assert isinstance(result, ConfigurationError)
    assert str(result) == "second"


def test_resolve_home_prefers_explicit_option() -> None:
    """An explicit home wins over HOME."""
    assert resolve_home("/explicit", {"HOME": "/env"}) == Path("/explicit")


def test_resolve_home_falls_back_to_env() -> None:
    """Uses HOME when no explicit home is given."""
    assert resolve_home(None, {"HOME": "/env"}) == Path("/env")


def test_resolve_home_fails_without_any_source() -> None:
    """Returns an error when no home can be found."""
    assert isinstance(resolve_home(None, {}), ConfigurationError)


def test_load_document_reports_missing_document() -> None:
    """A missing document is an error result, not an exception."""
    result = load_document(InMemoryConfigSource(), "user")

    assert isinstance(result, ConfigurationError)


def test_load_document_reports_malformed_yaml() -> None:
    """Malformed YAML is an error result, not an exception."""
    source = InMemoryConfigSource(documents={"user": "invalid: yaml: content: ["})

    assert isinstance(load_document(source, "user"), ConfigurationError)


def test_load_document_rejects_non_mapping() -> None:
    """A document must be a mapping."""
    source = InMemoryConfigSource(documents={"user": "- a\n- b\n"})

    assert isinstance(load_document(source, "user"), ConfigurationError)


def test_load_document_treats_empty_file_as_empty_mapping() -> None:
    """An empty document loads as an empty mapping."""
    source = InMemoryConfigSource(documents={"project": ""})

    assert load_document(source, "project") == MapNode({})


def test_load_config_merges_user_and_project() -> None:
    """Project settings override and extend user settings."""
    source = InMemoryConfigSource(
        documents={"user": USER_CONFIG, "project": PROJECT_CONFIG}
    )

    config = load_config(source, {})

    assert config.server == "dev"
    assert config.project.api_id == "p1"
    assert config.project.version == "1.0"
    assert config.project.tags == ["user", "project"]
    assert config.workspace == Path("/tmp/rox")
    assert config.payload.publish is True
    assert config.payload.save is False


def test_load_config_with_only_one_document() -> None:
    """A single readable document is enough."""
    source = InMemoryConfigSource(
        documents={"user": "invalid: yaml: [", "project": PROJECT_CONFIG}
    )

    config = load_config(source, {})

    assert config.project.api_id == "p1"
    assert config.server is None


def test_load_config_fails_without_documents() -> None:
    """Raises ConfigurationError when neither document loads."""
    with pytest.raises(ConfigurationError, match="Unable to load both"):
        load_config(InMemoryConfigSource(), {})


def test_load_config_rejects_invalid_values() -> None:
    """Invalid settings become a ConfigurationError."""
    source = InMemoryConfigSource(documents={"project": "payload:\n  publish: maybe\n"})

    with pytest.raises(ConfigurationError, match="invalid configuration"):
        load_config(source, {})


def test_environment_overrides_file_settings(caplog: pytest.LogCaptureFixture) -> None:
    """ROX_* variables replace file settings and are reported."""
    source = InMemoryConfigSource(documents={"user": USER_CONFIG})
    env = {
        "ROX_SERVER": "prod",
        "ROX_PUBLISH": "0",
        "ROX_SAVE_PAYLOAD": "True",
        "ROX_PRINT_PAYLOAD": "t",
        "ROX_WORKSPACE": "/work",
    }

    with caplog.at_level(logging.WARNING):
        config = load_config(source, env)

    assert config.server == "prod"
    assert config.payload.publish is False
    assert config.payload.save is True
    assert config.payload.print_payload is True
    assert config.workspace == Path("/work")
    assert "(ROX_SERVER=prod)" in caplog.text
    assert "(ROX_PUBLISH=0)" in caplog.text


def test_empty_environment_variables_are_ignored() -> None:
    """Empty variables do not override anything."""
    source = InMemoryConfigSource(documents={"user": USER_CONFIG})

    config = load_config(source, {"ROX_SERVER": "", "ROX_PUBLISH": ""})

    assert config.server == "dev"
    assert config.payload.publish is True


def test_file_config_source_reads_from_disk(tmp_path: Path) -> None:
    """Reads the user document from home and the project one from the project."""
    home = tmp_path / "home"
    (home / ".rox").mkdir(parents=True)
    (home / ".rox" / "config.yml").write_text(USER_CONFIG)
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    (project_dir / "rox.yml").write_text(PROJECT_CONFIG)

    source = FileConfigSource(home=home, project_dir=project_dir)

    assert source.read("user") == USER_CONFIG
    assert source.read("project") == PROJECT_CONFIG
    assert source.describe("project") == str(project_dir / "rox.yml")


def test_file_config_source_returns_none_for_missing_files(tmp_path: Path) -> None:
    """Missing files read as None."""
    source = FileConfigSource(home=tmp_path, project_dir=tmp_path)

    assert source.read("user") is None
    assert source.read("project") is None


def test_load_config_skips_undecodable_document(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """A document that is not UTF-8 is reported and the other one still loads."""
    home = tmp_path / "home"
    (home / ".rox").mkdir(parents=True)
    (home / ".rox" / "config.yml").write_text(USER_CONFIG)
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    (project_dir / "rox.yml").write_bytes(b"project:\n  apiId: caf\xe9\n")
    source = FileConfigSource(home=home, project_dir=project_dir)

    with caplog.at_level(logging.WARNING):
        config = load_config(source, {})

    assert config.server == "dev"
    assert config.project.api_id is None
    assert f"unable to decode {project_dir / 'rox.yml'}" in caplog.text
