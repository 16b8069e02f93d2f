"""End-of-run publishing of the payload."""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rox_client.context import RunContext
from rox_client.errors import ConfigurationError, RoxClientError, TransportError
from rox_client.models.config import PayloadOptions
from rox_client.storage import save_payload
from rox_client.transport import AiohttpTransport, ApiCredentials, TransportFactory

log = logging.getLogger(__name__)

ACCEPTED = 202


@dataclass(frozen=True, kw_only=True)
class PublishGateway:
    """Publishes, saves and prints the payload of a run.

    Every step is toggled by ``options`` and runs even if an earlier step
    failed. Failures are logged, never raised. Publishing is not retried.
    """

    options: PayloadOptions
    server: str | None = None
    workspace: Path | None = None
    endpoint: str | None = None
    credentials: ApiCredentials | None = None
    transport_factory: TransportFactory = AiohttpTransport.open

    async def publish(
        self,
        context: RunContext,
        payload: Mapping[str, Any],
        *,
        roxable: int,
        total: int,
    ) -> None:
        """Run the enabled end-of-run steps for an encoded payload."""
        if context.publishing_disabled or not _has_results(payload):
            return

        body = json.dumps(payload)

        if self.options.publish:
            try:
                await self._send(body, roxable=roxable, total=total)
            except RoxClientError as e:
                log.error("%s", e)
        else:
            log.warning(
                "RESULTS WERE NOT SENT TO ROX CENTER. This is due to 'publish' "
                "parameters in config file or to ROX_PUBLISH environment variable."
            )

        if self.options.save:
            try:
                self._save(body)
            except RoxClientError as e:
                log.error("%s", e)

        if self.options.print_payload:
            log.debug(
                "generated JSON payload:\n%s",
                json.dumps(payload, indent=2, ensure_ascii=False),
            )

    async def _send(self, body: str, *, roxable: int, total: int) -> None:
        if self.endpoint is None or self.credentials is None:
            raise ConfigurationError(
                "no submission endpoint was discovered. Could not publish payload."
            )

        async with self.transport_factory() as transport:
            response = await transport.post(
                self.endpoint, self.credentials.headers(), body
            )

        if response.status != ACCEPTED:
            raise TransportError(
                f"ROX server ({self.endpoint}) returned an HTTP {response.status} "
                f"error:\n{response.body}"
            )

        log.info(
            "%d test results successfully sent to ROX center (%s) out of %d tests.",
            roxable,
            self.endpoint,
            total,
        )

    def _save(self, body: str) -> None:
        if self.workspace is None or self.server is None:
            raise ConfigurationError(
                "no 'workspace' parameter in config files. Could not save payload."
            )
        path = save_payload(self.workspace, self.server, body)
        log.info("payload saved in workspace (%s).", path)


def _has_results(payload: Mapping[str, Any]) -> bool:
    return any(project.get("t") for project in payload.get("r", ()))
