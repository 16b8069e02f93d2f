"""Models for the resolved ROX client configuration."""

from collections.abc import Mapping, Sequence
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from yarl import URL

from rox_client.errors import ConfigurationError
from rox_client.models.base import Model


def stringify_number(value: object) -> object:
    # YAML reads ids and versions such as 1.0 as numbers
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return value


class ServerConfig(Model):
    """Connection settings for one ROX Center server."""

    api_url: str | None = Field(default=None, alias="apiUrl")
    api_key_id: str | None = Field(default=None, alias="apiKeyId")
    api_key_secret: SecretStr | None = Field(default=None, alias="apiKeySecret")

    @field_validator("api_key_id", "api_key_secret", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return stringify_number(value)


class PayloadOptions(Model):
    """End-of-run actions applied to the payload."""

    publish: bool = True
    save: bool = False
    print_payload: bool = Field(default=False, alias="print")
    cache: bool = False


class ProjectConfig(Model):
    """Project identification and default test metadata."""

    api_id: str | None = Field(default=None, alias="apiId")
    version: str | None = None
    category: str | None = None
    tags: Sequence[str] = ()
    tickets: Sequence[str] = ()

    @field_validator("api_id", "version", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return stringify_number(value)

    @field_validator("tags", "tickets", mode="before")
    @classmethod
    def _split(cls, value: object) -> object:
        if isinstance(value, str):
            return [part for part in value.split(",") if part]
        return value


class RoxConfig(Model):
    """Complete configuration after merging files and environment."""

    server: str | None = None
    servers: Mapping[str, ServerConfig] = Field(default_factory=dict)
    payload: PayloadOptions = PayloadOptions()
    workspace: Path | None = None
    project: ProjectConfig = ProjectConfig()

    def resolve_server(self) -> tuple[str, ServerConfig]:
        """Return the selected server name and its validated settings.

        Raises:
            ConfigurationError: If no usable server is configured

        """
        if not self.server:
            raise ConfigurationError(
                "no ROX server defined either by environment variable, "
                "either by config files."
            )

        server = self.servers.get(self.server)
        if server is None or not server.api_url:
            raise ConfigurationError(f"no apiUrl found for {self.server}.")
        if not is_valid_url(server.api_url):
            raise ConfigurationError(
                f"invalid url for {self.server} ({server.api_url})"
            )
        if not server.api_key_id:
            raise ConfigurationError(f"missing apiKeyId for {self.server}.")
        if server.api_key_secret is None or not server.api_key_secret.get_secret_value():
            raise ConfigurationError(f"missing apiKeySecret for {self.server}.")

        return self.server, server


def is_valid_url(value: str) -> bool:
    """Check that a value is an absolute http(s) URL with a host."""
    try:
        url = URL(value)
    except ValueError:
        return False
    return url.is_absolute() and url.scheme in {"http", "https"} and bool(url.host)
