"""pytest plugin sending results of ``roxable`` tests to ROX Center.

Enable it with ``pytest --rox`` and mark tests with::

    @pytest.mark.roxable(key="abc123", tags="api,smoke", tickets="JIRA-1")
    def test_something(): ...
"""

from collections import defaultdict
from dataclasses import dataclass, field

import pytest

from rox_client.listener import RoxTestListener
from rox_client.models.annotation import Annotation
from rox_client.registry import AnnotationRegistry

PLUGIN_NAME = "rox-reporter"


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("rox", "ROX Center reporting")
    group.addoption(
        "--rox",
        action="store_true",
        default=False,
        help="Send results of roxable tests to ROX Center",
    )
    group.addoption(
        "--rox-verbose",
        action="store_true",
        default=False,
        help="Report tests that are not roxable",
    )
    group.addoption(
        "--rox-home",
        default=None,
        help="Directory containing .rox/config.yml (defaults to $HOME)",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "roxable(key, name=None, category=None, tags=None, tickets=None): "
        "report this test to ROX Center",
    )
    if not config.getoption("rox"):
        return

    listener = RoxTestListener.create(
        AnnotationRegistry(),
        home=config.getoption("rox_home"),
        verbose=config.getoption("rox_verbose"),
    )
    config.pluginmanager.register(RoxReporter(listener=listener), PLUGIN_NAME)


@dataclass(kw_only=True, eq=False)
class RoxReporter:
    """Translates pytest hooks into listener lifecycle calls."""

    listener: RoxTestListener
    durations: defaultdict[str, float] = field(
        default_factory=lambda: defaultdict(float)
    )

    def pytest_sessionstart(self) -> None:
        self.listener.on_suite_start()

    def pytest_collection_modifyitems(self, items: list[pytest.Item]) -> None:
        registry = self.listener.accumulator.registry
        for item in items:
            for marker in item.iter_markers():
                registry.register(
                    item.nodeid,
                    Annotation(name=marker.name, options=dict(marker.kwargs)),
                )

    def pytest_runtest_logstart(self, nodeid: str) -> None:
        self.durations[nodeid] = 0.0
        self.listener.on_test_start(nodeid)

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        self.durations[report.nodeid] += report.duration

        if report.failed:
            if report.when == "call":
                self.listener.on_test_failure(report.nodeid, report.longreprtext)
            else:
                self.listener.on_test_error(report.nodeid, report.longreprtext)
        elif report.skipped:
            if hasattr(report, "wasxfail"):
                self.listener.on_test_incomplete(report.nodeid)
            else:
                self.listener.on_test_skipped(report.nodeid)

    def pytest_runtest_logfinish(self, nodeid: str) -> None:
        self.listener.on_test_end(nodeid, self.durations.pop(nodeid, 0.0))

    def pytest_sessionfinish(self) -> None:
        self.listener.on_suite_end()

    def pytest_unconfigure(self) -> None:
        self.listener.close()
