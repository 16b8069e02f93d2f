"""Accumulate test results from lifecycle events."""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from rox_client.context import RunContext
from rox_client.errors import ValidationError
from rox_client.models.annotation import (
    ROXABLE,
    RoxableTest,
    TestFlag,
    parse_roxable_test,
)
from rox_client.models.config import ProjectConfig
from rox_client.models.result import TestResult
from rox_client.payload import PAYLOAD_ENCODING
from rox_client.registry import AnnotationRegistry

log = logging.getLogger(__name__)

MESSAGE_MAX_BYTES = 65535
INCOMPLETE_MESSAGE = "This test is marked as incomplete."

_CAMEL_CASE = re.compile(r"(?!^)[A-Z]{2,}(?=[A-Z][a-z])|[A-Z][a-z]")
_PARAMETERS = re.compile(r"\[.*\]$")


def humanize_test_name(test_id: str) -> str:
    """Turn a test identifier into a sentence.

    >>> humanize_test_name("tests/test_login.py::TestLogin::testUserCanLogIn")
    'Test user can log in'
    """
    function_name = _PARAMETERS.sub("", test_id.rsplit("::", 1)[-1])
    spaced = _CAMEL_CASE.sub(lambda m: f" {m.group(0)}", function_name)
    words = spaced.replace("_", " ").split()
    return " ".join(words).lower().capitalize()


def union(*groups: Iterable[str]) -> tuple[str, ...]:
    """Concatenate groups, keeping the first occurrence of each value."""
    return tuple(dict.fromkeys(value for group in groups for value in group))


def truncate_message(message: str, max_bytes: int = MESSAGE_MAX_BYTES) -> str:
    """Cut a message to at most ``max_bytes`` once encoded.

    A character that would be split by the cut is dropped entirely.
    """
    encoded = message.encode(PAYLOAD_ENCODING, errors="replace")
    if len(encoded) <= max_bytes:
        return message
    return encoded[:max_bytes].decode(PAYLOAD_ENCODING, errors="ignore")


@dataclass(kw_only=True)
class ResultAccumulator:
    """Test lifecycle state machine collecting one result per roxable test."""

    registry: AnnotationRegistry
    project: ProjectConfig = field(default_factory=ProjectConfig)
    verbose: bool = False

    tests_seen: int = field(default=0, init=False)
    roxable_tests_seen: int = field(default=0, init=False)
    results: list[TestResult] = field(default_factory=list, init=False)
    current: TestResult | None = field(default=None, init=False)

    def start_suite(self) -> None:
        self.results = []
        self.current = None
        self.tests_seen = 0
        self.roxable_tests_seen = 0

    def start_test(self, context: RunContext, test_id: str) -> TestResult | None:
        """Begin a test and return its in-progress result, if it is roxable."""
        self.current = None
        self.tests_seen += 1
        if context.publishing_disabled:
            return None

        descriptor = self._find_descriptor(test_id)
        if descriptor is None:
            return None

        self.current = TestResult(
            key=descriptor.key,
            name=descriptor.name or humanize_test_name(test_id),
            flags=descriptor.flags,
            category=descriptor.category or self.project.category,
            tags=union(self.project.tags, descriptor.tags),
            tickets=union(self.project.tickets, descriptor.tickets),
        )
        self.roxable_tests_seen += 1
        return self.current

    def record_failure(self, message: str) -> None:
        if self.current is not None:
            self.current.passed = False
            self.current.message = message

    record_error = record_failure

    def record_incomplete(self) -> None:
        if self.current is not None:
            self.current.passed = False
            self.current.message = INCOMPLETE_MESSAGE

    def record_skipped(self) -> None:
        if self.current is not None:
            self.current.flags = TestFlag.INACTIVE

    def end_test(self, test_id: str, elapsed_seconds: float) -> None:
        result, self.current = self.current, None
        if result is None:
            if self.verbose:
                log.warning("test %s is not roxable.", test_id)
            return

        result.duration_ms = round(elapsed_seconds * 1000)
        if result.message is not None:
            truncated = truncate_message(result.message)
            if truncated != result.message:
                result.message = truncated
                log.warning("some error messages were truncated.")

        self.results.append(result)

    def end_suite(self, context: RunContext) -> Sequence[TestResult]:
        """Hand the accumulated results over and start a fresh list."""
        self.current = None
        results, self.results = self.results, []
        if context.publishing_disabled:
            log.warning(
                "RESULTS WERE NOT SENT TO ROX CENTER. "
                "This is due to previously logged errors."
            )
            return []
        return results

    def _find_descriptor(self, test_id: str) -> RoxableTest | None:
        # annotations are registered closest first
        for annotation in self.registry.annotations_for(test_id):
            if annotation.name != ROXABLE:
                continue
            try:
                return parse_roxable_test(annotation.options)
            except ValidationError as e:
                log.error("invalid roxable annotation on %s: %s", test_id, e)
        return None
