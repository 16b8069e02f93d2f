"""Load and resolve the ROX client configuration.

Settings come from three layers, applied in order:

1. the user document (``~/.rox/config.yml``)
2. the project document (``rox.yml`` in the project directory)
3. ``ROX_*`` environment variables

Documents are merged with :func:`rox_client.config.merge.merge`; environment
variables replace single values.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import pydantic
import yaml

from rox_client.config.merge import ConfigNode, MapNode, merge, set_path, to_node, to_raw
from rox_client.errors import ConfigurationError
from rox_client.models.config import RoxConfig

log = logging.getLogger(__name__)

type DocumentName = Literal["user", "project"]
type LoadResult[T] = T | ConfigurationError

USER_CONFIG_PATH = Path(".rox") / "config.yml"
PROJECT_CONFIG_PATH = Path("rox.yml")

TRUE_VALUES = frozenset({"1", "TRUE", "T"})

ENV_OVERRIDES: Mapping[str, tuple[tuple[str, ...], bool]] = {
    "ROX_SERVER": (("server",), False),
    "ROX_PUBLISH": (("payload", "publish"), True),
    "ROX_PRINT_PAYLOAD": (("payload", "print"), True),
    "ROX_SAVE_PAYLOAD": (("payload", "save"), True),
    "ROX_WORKSPACE": (("workspace",), False),
}


class ConfigSource(ABC):
    """Provides the raw text of the named configuration documents."""

    @abstractmethod
    def read(self, name: DocumentName) -> str | None:
        """Return the document text, or None if it does not exist."""

    @abstractmethod
    def describe(self, name: DocumentName) -> str:
        """Return a human-readable location for the document."""


@dataclass(frozen=True, kw_only=True)
class FileConfigSource(ConfigSource):
    """Reads the user and project documents from disk."""

    home: Path
    project_dir: Path

    def path(self, name: DocumentName) -> Path:
        if name == "user":
            return self.home / USER_CONFIG_PATH
        return self.project_dir / PROJECT_CONFIG_PATH

    def read(self, name: DocumentName) -> str | None:
        try:
            return self.path(name).read_text(encoding="utf-8")
        except OSError:
            return None

    def describe(self, name: DocumentName) -> str:
        return str(self.path(name))


def parse_bool(value: str) -> bool:
    """Parse a permissive boolean: ``1``, ``true`` or ``t`` in any case."""
    return value.strip().upper() in TRUE_VALUES


def first_of[T](*loaders: Callable[[], LoadResult[T]]) -> LoadResult[T]:
    """Evaluate loaders in order and return the first success.

    If every loader fails, the last error is returned.
    """
    result: LoadResult[T] = ConfigurationError("no loader configured")
    for loader in loaders:
        result = loader()
        if not isinstance(result, ConfigurationError):
            return result
    return result


def resolve_home(
    explicit: Path | str | None, env: Mapping[str, str]
) -> LoadResult[Path]:
    """Find the user home directory from an explicit option or ``HOME``."""

    def from_option() -> LoadResult[Path]:
        if explicit:
            return Path(explicit)
        return ConfigurationError("no home option given")

    def from_env() -> LoadResult[Path]:
        if home := env.get("HOME"):
            return Path(home)
        return ConfigurationError(
            "No variables set for user home, either with the HOME "
            "environment variable, either with the --rox-home option."
        )

    return first_of(from_option, from_env)


def load_document(source: ConfigSource, name: DocumentName) -> LoadResult[ConfigNode]:
    """Load and parse one document without raising."""
    try:
        text = source.read(name)
    except UnicodeDecodeError as e:
        return ConfigurationError(f"unable to decode {source.describe(name)}: {e}")
    if text is None:
        return ConfigurationError(f"unable to load {source.describe(name)}")

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return ConfigurationError(f"unable to parse {source.describe(name)}: {e}")

    if raw is None:
        raw = {}
    node = to_node(raw)
    if not isinstance(node, MapNode):
        return ConfigurationError(f"{source.describe(name)} is not a mapping")
    return node


def apply_env_overrides(node: ConfigNode, env: Mapping[str, str]) -> ConfigNode:
    """Replace single values with ``ROX_*`` environment variables."""
    for variable, (path, is_bool) in ENV_OVERRIDES.items():
        if not (value := env.get(variable)):
            continue
        node = set_path(node, path, parse_bool(value) if is_bool else value)
        log.warning(
            "use environment variable instead of config files (%s=%s).",
            variable,
            value,
        )
    return node


def load_config(source: ConfigSource, env: Mapping[str, str]) -> RoxConfig:
    """Load, merge and validate the configuration.

    Raises:
        ConfigurationError: If neither document loads or the result is invalid

    """
    documents: list[ConfigNode] = []
    for name in ("user", "project"):
        result = load_document(source, name)
        if isinstance(result, ConfigurationError):
            log.warning("%s", result)
        else:
            documents.append(result)

    if not documents:
        raise ConfigurationError(
            f"Unable to load both ROX user config file "
            f"({source.describe('user')}) and ROX project config file "
            f"({source.describe('project')})."
        )

    tree: ConfigNode = MapNode()
    for document in documents:
        tree = merge(tree, document)
    tree = apply_env_overrides(tree, env)

    try:
        return RoxConfig.model_validate(to_raw(tree))
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e
