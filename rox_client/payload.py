"""Assemble the payload sent at the end of a run."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from rox_client.errors import ConfigurationError
from rox_client.models.annotation import TestFlag
from rox_client.models.config import ProjectConfig
from rox_client.models.payload import ProjectRun, RunPayload, TestEntry
from rox_client.models.result import TestResult

PAYLOAD_ENCODING = "utf-8"


@dataclass(frozen=True, kw_only=True)
class RunMeta:
    """Run-level values that do not come from the results."""

    run_uid: str
    duration_ms: int


def reencode(data: Any, encoding: str = PAYLOAD_ENCODING) -> Any:
    """Recursively make every string representable in ``encoding``.

    Characters that cannot be encoded are replaced. Mappings keep their key
    order, sequences their item order, and other values are returned as is.
    """
    if isinstance(data, str):
        return data.encode(encoding, errors="replace").decode(encoding, errors="replace")
    if isinstance(data, bytes):
        return data.decode(encoding, errors="replace")
    if isinstance(data, Mapping):
        return {key: reencode(value, encoding) for key, value in data.items()}
    if isinstance(data, list | tuple):
        return [reencode(item, encoding) for item in data]
    return data


def to_entry(result: TestResult) -> TestEntry:
    """Convert a result to its wire entry, leaving empty fields out."""
    return TestEntry(
        key=result.key,
        name=result.name,
        passed=result.passed,
        duration=result.duration_ms,
        message=result.message,
        flags=int(result.flags) if result.flags != TestFlag.NONE else None,
        category=result.category,
        tags=list(result.tags) or None,
        tickets=list(result.tickets) or None,
    )


@dataclass(frozen=True, kw_only=True)
class PayloadBuilder:
    """Builds the run payload from accumulated results."""

    encoding: str = PAYLOAD_ENCODING

    def build(
        self,
        results: Sequence[TestResult],
        project: ProjectConfig,
        meta: RunMeta,
    ) -> RunPayload:
        """Build the payload of a run with a single project.

        Raises:
            ConfigurationError: If the project apiId or version is missing

        """
        if not project.api_id:
            raise ConfigurationError("missing apiId for project in config files.")
        if not project.version:
            raise ConfigurationError("missing version for project in config files.")

        return RunPayload(
            run_uid=meta.run_uid,
            duration=meta.duration_ms,
            projects=[
                ProjectRun(
                    api_id=project.api_id,
                    version=project.version,
                    tests=[to_entry(result) for result in results],
                )
            ],
        )

    def encode(self, payload: RunPayload) -> dict[str, Any]:
        """Return the wire mapping of a payload with re-encoded strings."""
        wire = payload.model_dump(by_alias=True, exclude_none=True)
        return reencode(wire, self.encoding)
