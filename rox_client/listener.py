"""Lifecycle listener tying configuration, accumulation and publishing together."""

import asyncio
import logging
import os
import sys
import time
import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from rox_client.accumulator import ResultAccumulator
from rox_client.config.loader import ConfigSource, FileConfigSource, load_config, resolve_home
from rox_client.context import RunContext, RunLog, attached_run_log
from rox_client.errors import ConfigurationError, RoxClientError
from rox_client.gateway import PublishGateway
from rox_client.models.config import RoxConfig
from rox_client.payload import PayloadBuilder, RunMeta
from rox_client.registry import AnnotationRegistry
from rox_client.storage import load_cache, resolve_run_uid
from rox_client.transport import (
    AiohttpTransport,
    ApiCredentials,
    TransportFactory,
    discover_submission_endpoint,
)

log = logging.getLogger(__name__)


def format_failure(failure: str | BaseException) -> str:
    """Return the message recorded for a failed test."""
    if isinstance(failure, BaseException):
        return "".join(traceback.format_exception(failure))
    return failure


@dataclass(kw_only=True)
class RoxTestListener:
    """Receives test lifecycle events and publishes results at suite end."""

    context: RunContext
    accumulator: ResultAccumulator
    gateway: PublishGateway
    config: RoxConfig = field(default_factory=RoxConfig)
    run_uid: str = ""
    cache: Mapping[str, object] = field(default_factory=dict)
    builder: PayloadBuilder = field(default_factory=PayloadBuilder)
    run_log: RunLog | None = None
    clock: Callable[[], float] = time.time
    suite_start_ms: int = 0

    @classmethod
    def create(
        cls,
        registry: AnnotationRegistry,
        *,
        env: Mapping[str, str] | None = None,
        source: ConfigSource | None = None,
        home: Path | str | None = None,
        verbose: bool = False,
        transport_factory: TransportFactory = AiohttpTransport.open,
        clock: Callable[[], float] = time.time,
        run_log: RunLog | None = None,
    ) -> "RoxTestListener":
        """Resolve configuration and prepare the listener.

        Errors are logged and disable publishing for the rest of the run;
        they never propagate.
        """
        env = os.environ if env is None else env
        run_log = attached_run_log() if run_log is None else run_log
        context = RunContext()
        if verbose:
            log.info("ROX client is verbose.")

        config = RoxConfig()
        server: str | None = None
        endpoint: str | None = None
        credentials: ApiCredentials | None = None
        run_uid = ""
        cache: Mapping[str, object] = {}

        try:
            if source is None:
                resolved_home = resolve_home(home, env)
                if isinstance(resolved_home, ConfigurationError):
                    raise resolved_home
                source = FileConfigSource(home=resolved_home, project_dir=Path.cwd())

            config = load_config(source, env)
            run_uid = resolve_run_uid(env, config.workspace)
            server, server_config = config.resolve_server()
            credentials = ApiCredentials(
                key_id=server_config.api_key_id or "",
                secret=server_config.api_key_secret,
            )

            if config.payload.publish:
                endpoint = asyncio.run(
                    _discover(transport_factory, server_config.api_url or "", credentials)
                )

            if config.payload.cache:
                cache = load_cache(config.workspace, server, config.project.api_id)
        except RoxClientError as e:
            log.error("%s", e)
            context.disable(str(e))

        return cls(
            context=context,
            accumulator=ResultAccumulator(
                registry=registry, project=config.project, verbose=verbose
            ),
            gateway=PublishGateway(
                options=config.payload,
                server=server,
                workspace=config.workspace,
                endpoint=endpoint,
                credentials=credentials,
                transport_factory=transport_factory,
            ),
            config=config,
            run_uid=run_uid,
            cache=cache,
            run_log=run_log,
            clock=clock,
        )

    def on_suite_start(self) -> None:
        self.suite_start_ms = self._now_ms()
        self.accumulator.start_suite()

    def on_test_start(self, test_id: str) -> None:
        self.accumulator.start_test(self.context, test_id)

    def on_test_failure(self, test_id: str, failure: str | BaseException) -> None:
        self.accumulator.record_failure(format_failure(failure))

    def on_test_error(self, test_id: str, error: str | BaseException) -> None:
        self.accumulator.record_error(format_failure(error))

    def on_test_incomplete(self, test_id: str) -> None:
        self.accumulator.record_incomplete()

    def on_test_skipped(self, test_id: str) -> None:
        self.accumulator.record_skipped()

    def on_test_end(self, test_id: str, elapsed_seconds: float) -> None:
        self.accumulator.end_test(test_id, elapsed_seconds)

    def on_suite_end(self) -> None:
        """Build the payload and run the end-of-run steps."""
        results = self.accumulator.end_suite(self.context)
        if not results:
            return

        meta = RunMeta(
            run_uid=self.run_uid, duration_ms=self._now_ms() - self.suite_start_ms
        )
        try:
            payload = self.builder.build(results, self.config.project, meta)
        except ConfigurationError as e:
            log.error("%s", e)
            self.context.disable(str(e))
            return

        asyncio.run(
            self.gateway.publish(
                self.context,
                self.builder.encode(payload),
                roxable=self.accumulator.roxable_tests_seen,
                total=self.accumulator.tests_seen,
            )
        )

    def close(self, stream: TextIO | None = None) -> None:
        """Print the diagnostic log once and detach it."""
        if self.run_log is None:
            return
        self.run_log.flush_to(sys.stderr if stream is None else stream)
        logging.getLogger("rox_client").removeHandler(self.run_log)
        self.run_log = None

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)


async def _discover(
    transport_factory: TransportFactory, server_url: str, credentials: ApiCredentials
) -> str:
    async with transport_factory() as transport:
        return await discover_submission_endpoint(transport, server_url, credentials)
