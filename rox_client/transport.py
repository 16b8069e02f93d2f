"""HTTP access to ROX Center."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Callable, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field

import aiohttp
import pydantic
from pydantic import Field, SecretStr

from rox_client.errors import TransportError
from rox_client.models.base import Model

log = logging.getLogger(__name__)

TEST_PAYLOADS_REL = "v1:test-payloads"


@dataclass(frozen=True, kw_only=True)
class HttpResponse:
    """Status and body of an HTTP response."""

    status: int
    body: str


@dataclass(frozen=True, kw_only=True)
class ApiCredentials:
    """API key used to authenticate against a ROX server."""

    key_id: str
    secret: SecretStr = field(repr=False)

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": (
                f'RoxApiKey id="{self.key_id}" '
                f'secret="{self.secret.get_secret_value()}"'
            )
        }


class HttpTransport(ABC):
    """Minimal HTTP capability used by the client."""

    @abstractmethod
    async def get(self, url: str, headers: Mapping[str, str]) -> HttpResponse:
        """Send a GET request."""

    @abstractmethod
    async def post(
        self, url: str, headers: Mapping[str, str], body: str
    ) -> HttpResponse:
        """Send a POST request with a JSON body."""


type TransportFactory = Callable[[], AbstractAsyncContextManager[HttpTransport]]


@dataclass(frozen=True, kw_only=True)
class AiohttpTransport(HttpTransport):
    """HttpTransport backed by an aiohttp session."""

    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def open(cls) -> AsyncGenerator["AiohttpTransport", None]:
        """Create a transport with managed session lifecycle."""
        async with aiohttp.ClientSession() as session:
            yield cls(session=session)

    async def get(self, url: str, headers: Mapping[str, str]) -> HttpResponse:
        return await self._request("GET", url, headers=dict(headers))

    async def post(
        self, url: str, headers: Mapping[str, str], body: str
    ) -> HttpResponse:
        return await self._request(
            "POST",
            url,
            headers={"Content-Type": "application/json", **headers},
            data=body.encode("utf-8"),
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        data: bytes | None = None,
    ) -> HttpResponse:
        try:
            async with self.session.request(
                method, url, headers=headers, data=data
            ) as response:
                return HttpResponse(
                    status=response.status, body=await response.text(errors="replace")
                )
        except TimeoutError as e:
            raise TransportError(f"{method} {url} timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e


class Link(Model):
    """A hypermedia link."""

    href: str


class RootResource(Model):
    """Root resource of a ROX server, as far as the client needs it."""

    links: Mapping[str, object] = Field(default_factory=dict, alias="_links")


async def discover_submission_endpoint(
    transport: HttpTransport, server_url: str, credentials: ApiCredentials
) -> str:
    """Find the URL test payloads are posted to.

    Raises:
        TransportError: If the root resource cannot be fetched or has no link

    """
    response = await transport.get(server_url, credentials.headers())
    if response.status != 200:
        raise TransportError(
            f"ROX server ({server_url}) returned an HTTP {response.status} "
            f"error:\n{response.body}"
        )

    try:
        root = RootResource.model_validate_json(response.body)
        link = Link.model_validate(root.links.get(TEST_PAYLOADS_REL))
    except pydantic.ValidationError as e:
        raise TransportError(
            f"missing link for {TEST_PAYLOADS_REL} in {server_url} response."
        ) from e

    log.debug("test payloads are submitted to %s", link.href)
    return link.href
