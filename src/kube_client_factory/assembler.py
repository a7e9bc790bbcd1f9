"""Layering of explicit overrides onto an auto-discovered base configuration."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, MutableMapping
from functools import reduce
from typing import Any

import structlog

from kube_client_factory.credentials import (
    CredentialSpec,
    NoCredential,
    TokenFile,
    TokenProviderCredential,
    TokenValue,
)
from kube_client_factory.discovery import AmbientDiscovery
from kube_client_factory.errors import MissingRequiredFieldError, TokenFileReadError
from kube_client_factory.models import (
    FIXED_API_VERSION,
    WEBSOCKET_PING_DISABLED,
    AssembledConfig,
    ClientConfigOverrides,
)

log = structlog.get_logger()

KUBERNETES_REQUEST_RETRY_BACKOFFLIMIT = "KUBERNETES_REQUEST_RETRY_BACKOFFLIMIT"
DEFAULT_REQUEST_RETRY_BACKOFFLIMIT = "3"

Discovery = Callable[[str | None], AssembledConfig]
Applier = Callable[[AssembledConfig, Any], AssembledConfig]
Override = tuple[Any, Applier]


class ProcessTunables:
    """Process-wide settings shared by every client built in this process.

    Backed by ``os.environ`` unless another mapping is passed in. Writes are not
    synchronized: two constructions racing to set the same default is harmless.
    """

    def __init__(self, environ: MutableMapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def get(self, name: str) -> str | None:
        return self._environ.get(name)

    def ensure_default(self, name: str, default: str) -> str:
        """Set ``name`` to ``default`` unless it already has a value; return the effective value."""
        current = self._environ.get(name)
        if current is not None:
            return current
        self._environ[name] = default
        log.info("process_tunable_defaulted", name=name, value=default)
        return default


def set_field(name: str) -> Applier:
    def apply(config: AssembledConfig, value: Any) -> AssembledConfig:
        return config.model_copy(update={name: value})

    return apply


def apply_overrides(config: AssembledConfig, overrides: Iterable[Override]) -> AssembledConfig:
    """Fold ``(value, apply)`` pairs over ``config``, skipping values that are ``None``."""
    return reduce(
        lambda acc, override: acc if override[0] is None else override[1](acc, override[0]),
        overrides,
        config,
    )


def _read_token_file(credential: TokenFile) -> str:
    try:
        return credential.path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise TokenFileReadError(str(credential.path), exc.strerror or str(exc)) from exc


def apply_credential(config: AssembledConfig, credential: CredentialSpec) -> AssembledConfig:
    """Replace the token settings of ``config`` with ``credential``.

    Token and provider are replaced together so a discovered provider never
    outlives an explicit token.
    """
    if isinstance(credential, TokenProviderCredential):
        update: dict[str, Any] = {"oauth_token": None, "oauth_token_provider": credential.provider}
    elif isinstance(credential, TokenValue):
        update = {"oauth_token": credential.token, "oauth_token_provider": None}
    elif isinstance(credential, TokenFile):
        update = {"oauth_token": _read_token_file(credential), "oauth_token_provider": None}
    else:
        return config
    return config.model_copy(update=update)


def _backoff_limit(value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        msg = f"{KUBERNETES_REQUEST_RETRY_BACKOFFLIMIT} must be an integer, got {value!r}"
        raise ValueError(msg) from exc


def assemble_config(
    overrides: ClientConfigOverrides,
    discovery: Discovery | None = None,
    tunables: ProcessTunables | None = None,
) -> AssembledConfig:
    """Build the client configuration: discovered base first, explicit overrides on top.

    Args:
        overrides: Explicit settings. ``master`` is required; every other ``None``
            field leaves the discovered value in place.
        discovery: Callable returning the base configuration for a context name
            (``None`` selects the current context).
        tunables: Process-wide settings; the retry backoff limit is defaulted
            here as a side effect visible to every later construction.

    Raises:
        MissingRequiredFieldError: If no master URL was given.
        TokenFileReadError: If the selected token file cannot be read.
    """
    if not overrides.master:
        raise MissingRequiredFieldError("master")

    discovery = discovery or AmbientDiscovery()
    tunables = tunables or ProcessTunables()

    context = overrides.context or None
    log.info(
        "auto_configuring_client",
        source=f"context {context}" if context else "current context",
    )
    backoff_limit = tunables.ensure_default(KUBERNETES_REQUEST_RETRY_BACKOFFLIMIT, DEFAULT_REQUEST_RETRY_BACKOFFLIMIT)

    base = discovery(context)
    config = base.model_copy(
        update={
            "api_version": FIXED_API_VERSION,
            "websocket_ping_interval_ms": WEBSOCKET_PING_DISABLED,
            "master_url": overrides.master,
            "request_timeout_ms": overrides.request_timeout_ms,
            "connection_timeout_ms": overrides.connection_timeout_ms,
            "trust_certs": overrides.trust_certs,
            "request_retry_backoff_limit": _backoff_limit(backoff_limit),
        }
    )

    credential = None if isinstance(overrides.credential, NoCredential) else overrides.credential
    return apply_overrides(
        config,
        [
            (credential, apply_credential),
            (overrides.ca_cert_file, set_field("ca_cert_file")),
            (overrides.client_key_file, set_field("client_key_file")),
            (overrides.client_cert_file, set_field("client_cert_file")),
            (overrides.namespace, set_field("namespace")),
            (context, set_field("context")),
        ],
    )
