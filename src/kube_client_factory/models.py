"""Value objects shared by the assembler, discovery, and transport layers."""

from __future__ import annotations

import json
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from kube_client_factory.credentials import CredentialSpec, TokenProvider

FIXED_API_VERSION = "v1"
WEBSOCKET_PING_DISABLED = 0
DEFAULT_TIMEOUT_MS = 10000

_REDACTED = "<redacted>"


@dataclass(frozen=True)
class ClientConfigOverrides:
    """Explicit settings layered over the auto-discovered base configuration.

    ``None`` means "not provided, keep the base value". ``master`` is required.
    """

    master: str
    request_timeout_ms: int
    connection_timeout_ms: int
    trust_certs: bool = False
    namespace: str | None = None
    context: str | None = None
    credential: CredentialSpec | None = None
    ca_cert_file: str | None = None
    client_key_file: str | None = None
    client_cert_file: str | None = None


class AssembledConfig(BaseModel):
    """Immutable client configuration produced by layering overrides on a base."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    api_version: str = FIXED_API_VERSION
    master_url: str | None = None
    namespace: str | None = None
    context: str | None = None
    ca_cert_file: str | None = None
    client_key_file: str | None = None
    client_cert_file: str | None = None
    trust_certs: bool = False
    oauth_token: str | None = None
    oauth_token_provider: TokenProvider | None = Field(default=None, exclude=True)
    request_timeout_ms: int = DEFAULT_TIMEOUT_MS
    connection_timeout_ms: int = DEFAULT_TIMEOUT_MS
    websocket_ping_interval_ms: int = WEBSOCKET_PING_DISABLED
    request_retry_backoff_limit: int | None = None

    @property
    def request_timeout(self) -> tuple[float, float]:
        """``(connect, read)`` timeout in seconds, as urllib3 expects it."""
        return self.connection_timeout_ms / 1000, self.request_timeout_ms / 1000

    def redacted_json(self) -> str:
        """Pretty JSON of the configuration with credentials masked, for debug logs."""
        data = self.model_dump()
        if data["oauth_token"] is not None:
            data["oauth_token"] = _REDACTED
        provider = self.oauth_token_provider
        data["oauth_token_provider"] = type(provider).__qualname__ if provider is not None else None
        return json.dumps(data, indent=2, sort_keys=True)
