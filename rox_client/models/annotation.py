"""Models for the declarative descriptors attached to tests."""

from collections.abc import Mapping, Sequence
from enum import IntEnum

from pydantic import Field

from rox_client.errors import ValidationError
from rox_client.models.base import Model

ROXABLE = "roxable"
INVALID_TICKETS = "INVALID"


class TestFlag(IntEnum):
    """Flags reported for a test. Only one flag exists, so it is never a set."""

    __test__ = False

    NONE = 0
    INACTIVE = 1


class Annotation(Model):
    """A declarative descriptor attached to a test by the framework binding."""

    name: str = Field(..., description="Descriptor kind (e.g. a pytest marker name)")
    options: Mapping[str, object] = Field(default_factory=dict)


class RoxableTest(Model):
    """Validated content of a ``roxable`` descriptor."""

    __test__ = False

    key: str = Field(..., min_length=1, description="Unique ROX test key")
    name: str | None = None
    category: str | None = None
    tags: Sequence[str] = ()
    tickets: Sequence[str] = ()
    flags: TestFlag = TestFlag.NONE


def parse_roxable_test(options: Mapping[str, object]) -> RoxableTest:
    """Parse the raw options of a ``roxable`` descriptor.

    Raises:
        ValidationError: If the key is missing, not a string or empty

    """
    key = options.get("key")
    if not isinstance(key, str) or not key:
        raise ValidationError("missing or invalid key")

    raw_tickets = options.get("tickets")
    return RoxableTest(
        key=key,
        name=_optional_text(options.get("name")),
        category=_optional_text(options.get("category")),
        tags=split_csv(options.get("tags")),
        tickets=split_csv(raw_tickets),
        flags=TestFlag.INACTIVE if raw_tickets == INVALID_TICKETS else TestFlag.NONE,
    )


def split_csv(value: object) -> tuple[str, ...]:
    """Split a comma-separated option, dropping empty and repeated segments."""
    if not isinstance(value, str):
        return ()
    return tuple(dict.fromkeys(part for part in value.split(",") if part))


def _optional_text(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None
