"""Models for test execution results."""

from collections.abc import Sequence
from dataclasses import dataclass

from rox_client.models.annotation import TestFlag


@dataclass(kw_only=True)
class TestResult:
    """Result of a single roxable test.

    Created when the test starts, updated by outcome callbacks, and handed to
    the suite once the test ends.
    """

    __test__ = False

    key: str
    name: str
    passed: bool = True
    message: str | None = None
    duration_ms: int = 0
    flags: TestFlag = TestFlag.NONE
    category: str | None = None
    tags: Sequence[str] = ()
    tickets: Sequence[str] = ()
