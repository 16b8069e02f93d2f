"""Workspace files: run identifier, cache and saved payloads.

Per-server files live under ``<workspace>/pytest/servers/<server>/``.
"""

import json
import logging
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from rox_client.errors import ConfigurationError, PersistenceError

log = logging.getLogger(__name__)

CLIENT_DIR = "pytest"
RUN_UID_FILE = "uid"
CACHE_FILE = "cache.json"
PAYLOAD_FILE = "payload.json"


def server_dir(workspace: Path, server: str) -> Path:
    """Directory holding the files of one server."""
    return workspace / CLIENT_DIR / "servers" / server


def resolve_run_uid(env: Mapping[str, str], workspace: Path | None) -> str:
    """Return the run identifier shared by every payload of this run.

    The ``ROX_TEST_RUN_UID`` variable wins, then a ``uid`` file in the
    workspace, then a fresh UUID.

    Raises:
        PersistenceError: If the workspace ``uid`` file exists but is unusable

    """
    if uid := env.get("ROX_TEST_RUN_UID"):
        return uid

    if workspace is not None and (uid_path := workspace / RUN_UID_FILE).exists():
        try:
            uid = uid_path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise PersistenceError(
                f"A UID file exists in workspace ({uid_path}), but it cannot be read."
            ) from e
        if not uid:
            raise PersistenceError(
                f"A UID file exists in workspace ({uid_path}), but it is empty."
            )
        return uid

    return str(uuid.uuid4())


def load_cache(
    workspace: Path | None, server: str, api_id: str | None
) -> Mapping[str, Any]:
    """Load the cached data of a project.

    Raises:
        ConfigurationError: If the workspace or project apiId is not set
        PersistenceError: If the cache file cannot be read or decoded

    """
    if workspace is None:
        raise ConfigurationError(
            "missing workspace in config files or environment variables. "
            "Can not locate cache."
        )
    if not api_id:
        raise ConfigurationError("missing apiId for project in config files.")

    cache_path = server_dir(workspace, server) / CACHE_FILE
    if not cache_path.exists():
        return {}

    try:
        cache = json.loads(cache_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PersistenceError(f"unable to read cache file ({cache_path})") from e
    except ValueError as e:
        raise PersistenceError(
            f"unable to decode JSON of cache file ({cache_path})"
        ) from e

    if not isinstance(cache, dict):
        raise PersistenceError(f"cache file ({cache_path}) is not a JSON object")

    project_cache = cache.get(api_id)
    if not isinstance(project_cache, dict):
        log.warning("no existing cache data for this project.")
        return {}
    return project_cache


def save_payload(workspace: Path, server: str, body: str) -> Path:
    """Write a serialized payload into the server directory.

    Raises:
        PersistenceError: If the directory or file cannot be written

    """
    directory = server_dir(workspace, server)
    path = directory / PAYLOAD_FILE
    try:
        directory.mkdir(mode=0o755, parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
    except OSError as e:
        raise PersistenceError(f"unable to save payload in workspace ({e})") from e
    return path
