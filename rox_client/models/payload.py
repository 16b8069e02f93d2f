"""Models for the payload sent to ROX Center.

Field names on the wire are single letters; the aliases below are fixed by
the server and must not change.
"""

from collections.abc import Sequence

from pydantic import Field

from rox_client.models.base import Model


class TestEntry(Model):
    """One test result as sent on the wire."""

    __test__ = False

    key: str = Field(..., alias="k")
    name: str = Field(..., alias="n")
    passed: bool = Field(..., alias="p")
    duration: int = Field(..., alias="d", description="Duration in milliseconds")
    message: str | None = Field(default=None, alias="m")
    flags: int | None = Field(default=None, alias="f")
    category: str | None = Field(default=None, alias="c")
    tags: Sequence[str] | None = Field(default=None, alias="g")
    tickets: Sequence[str] | None = Field(default=None, alias="t")


class ProjectRun(Model):
    """Results of one project."""

    api_id: str = Field(..., alias="j")
    version: str = Field(..., alias="v")
    tests: Sequence[TestEntry] = Field(default_factory=list, alias="t")


class RunPayload(Model):
    """Complete payload of one test run."""

    run_uid: str = Field(..., alias="u")
    duration: int = Field(..., alias="d", description="Duration in milliseconds")
    projects: Sequence[ProjectRun] = Field(default_factory=list, alias="r")
