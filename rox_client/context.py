"""Run-wide state shared by the lifecycle callbacks."""

import logging
from dataclasses import dataclass
from typing import TextIO

LOG_FORMAT = "%(levelname)s %(message)s"


@dataclass(kw_only=True)
class RunContext:
    """State threaded through every lifecycle call of one run.

    Once publishing is disabled it stays disabled: there is no way to clear
    the reason.
    """

    disabled_reason: str | None = None

    @property
    def publishing_disabled(self) -> bool:
        return self.disabled_reason is not None

    def disable(self, reason: str) -> None:
        if self.disabled_reason is None:
            self.disabled_reason = reason


class RunLog(logging.Handler):
    """Buffers log lines for the person running the suite.

    Lines are printed once, when the run is torn down, so that they are not
    interleaved with the test runner's own output.
    """

    def __init__(self, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.lines: list[str] = []
        self.setFormatter(logging.Formatter(LOG_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.lines.append(self.format(record))
        except Exception:  # noqa: BLE001
            self.handleError(record)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def flush_to(self, stream: TextIO) -> None:
        """Write the buffered lines, if any, and forget them."""
        if self.lines:
            stream.write(f"\n\n{self.text}\n\n")
            stream.flush()
        self.lines.clear()


def attached_run_log(logger_name: str = "rox_client") -> RunLog:
    """Create a RunLog and attach it to the client's logger tree."""
    handler = RunLog()
    logger = logging.getLogger(logger_name)
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > logging.DEBUG:
        logger.setLevel(logging.DEBUG)
    return handler
