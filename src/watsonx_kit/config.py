# src/watsonx_kit/config.py

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from watsonx_kit.auth.issuer import IAM_CLOUD_HOST
from watsonx_kit.errors import ConfigurationError
from watsonx_kit.transport.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-05-20"
BASE_URL_FORMAT = "https://{region}.ml.cloud.ibm.com"

API_KEY_ENV = "WATSONX_API_KEY"
PROJECT_ID_ENV = "WATSONX_PROJECT_ID"
SPACE_ID_ENV = "WATSONX_SPACE_ID"
URL_ENV = "WATSONX_URL"
IAM_ENV = "WATSONX_IAM"
REGION_ENV = "WATSONX_REGION"
API_VERSION_ENV = "WATSONX_API_VERSION"


class Region(str, Enum):
    """IBM Cloud regions hosting watsonx.ai. Any other region string is accepted too."""

    US_SOUTH = "us-south"
    EU_DE = "eu-de"
    JP_TOK = "jp-tok"
    EU_GB = "eu-gb"
    AU_SYD = "au-syd"
    CA_TOR = "ca-tor"

    DALLAS = "us-south"
    FRANKFURT = "eu-de"
    TOKYO = "jp-tok"
    LONDON = "eu-gb"
    SYDNEY = "au-syd"
    TORONTO = "ca-tor"


def _region_value(region: "Region | str") -> str:
    return region.value if isinstance(region, Region) else str(region)


@dataclass(frozen=True)
class ClientConfig:
    """Configuration for ``WatsonxClient``.

    Immutable. Validated on construction; nothing here touches the network.
    Use ``from_env`` to pick values up from ``WATSONX_*`` variables.
    """

    api_key: str = field(default="", repr=False)
    project_id: str | None = None
    space_id: str | None = None
    region: Region | str = Region.US_SOUTH
    url: str | None = None  # host or full base URL; overrides region
    iam_host: str = IAM_CLOUD_HOST
    api_version: str = DEFAULT_API_VERSION
    timeout: float = 30.0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    stream_buffer_size: int = 16

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_key.strip():
            raise ConfigurationError("no watsonx API key provided")
        if not self.project_id and not self.space_id:
            raise ConfigurationError("no watsonx project ID or space ID provided")
        if self.project_id and self.space_id:
            logger.warning("Both project ID and space ID set; project ID takes precedence")
        if not self.api_version:
            raise ConfigurationError("api_version cannot be empty")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0")
        if self.stream_buffer_size < 1:
            raise ConfigurationError("stream_buffer_size must be >= 1")

    @property
    def base_url(self) -> str:
        if self.url:
            base = self.url if "://" in self.url else f"https://{self.url}"
            return base.rstrip("/")
        return BASE_URL_FORMAT.format(region=_region_value(self.region))

    @property
    def scope(self) -> dict[str, str]:
        """Project or space field sent with every request body."""
        if self.project_id:
            return {"project_id": self.project_id}
        return {"space_id": self.space_id or ""}

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> "ClientConfig":
        """Build a config from ``WATSONX_*`` variables. Explicit overrides win.

        Example:
            >>> config = ClientConfig.from_env(region=Region.EU_DE)
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            "api_key": env.get(API_KEY_ENV, ""),
            "project_id": env.get(PROJECT_ID_ENV) or None,
            "space_id": env.get(SPACE_ID_ENV) or None,
            "url": env.get(URL_ENV) or None,
        }
        if env.get(IAM_ENV):
            values["iam_host"] = env[IAM_ENV]
        if env.get(REGION_ENV):
            values["region"] = env[REGION_ENV]
        if env.get(API_VERSION_ENV):
            values["api_version"] = env[API_VERSION_ENV]

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"unknown config fields: {sorted(unknown)}")
        values.update(overrides)
        return cls(**values)
