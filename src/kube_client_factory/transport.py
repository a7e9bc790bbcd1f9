"""Kubernetes transport construction and the client handle returned to callers."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

import structlog
from kubernetes import client as k8s_client

from kube_client_factory.credentials import TokenProvider
from kube_client_factory.dispatcher import DaemonCachedThreadPool
from kube_client_factory.errors import TransportConstructionError
from kube_client_factory.models import AssembledConfig

log = structlog.get_logger()

_AUTH_KEY = "authorization"


def _provider_hook(provider: TokenProvider) -> Callable[[k8s_client.Configuration], None]:
    def refresh(configuration: k8s_client.Configuration) -> None:
        configuration.api_key[_AUTH_KEY] = provider.provide_token()

    return refresh


def to_kubernetes_configuration(config: AssembledConfig) -> k8s_client.Configuration:
    """Translate an assembled configuration into the SDK's ``Configuration``.

    A token provider is consulted on every request through the SDK's
    ``refresh_api_key_hook``; a static token is sent as-is.
    """
    configuration = k8s_client.Configuration()
    if config.master_url:
        configuration.host = config.master_url
    configuration.verify_ssl = not config.trust_certs
    configuration.ssl_ca_cert = config.ca_cert_file
    configuration.cert_file = config.client_cert_file
    configuration.key_file = config.client_key_file
    configuration.retries = config.request_retry_backoff_limit

    if config.oauth_token_provider is not None:
        # The SDK only runs the hook for keys it already knows about.
        configuration.api_key[_AUTH_KEY] = ""
        configuration.api_key_prefix[_AUTH_KEY] = "Bearer"
        configuration.refresh_api_key_hook = _provider_hook(config.oauth_token_provider)
    elif config.oauth_token is not None:
        configuration.api_key[_AUTH_KEY] = config.oauth_token
        configuration.api_key_prefix[_AUTH_KEY] = "Bearer"
    return configuration


class DispatchingApiClient(k8s_client.ApiClient):
    """ApiClient that applies a default ``(connect, read)`` timeout to every call.

    Calls that pass their own ``_request_timeout`` keep it.
    """

    def __init__(
        self,
        configuration: k8s_client.Configuration,
        default_request_timeout: tuple[float, float] | None = None,
    ) -> None:
        super().__init__(configuration)
        self.default_request_timeout = default_request_timeout

    def call_api(self, *args: Any, **kwargs: Any) -> Any:
        if kwargs.get("_request_timeout") is None and self.default_request_timeout is not None:
            kwargs["_request_timeout"] = self.default_request_timeout
        return super().call_api(*args, **kwargs)

    @property
    def dispatcher(self) -> Any:
        return self._pool


def build_api_client(config: AssembledConfig) -> DispatchingApiClient:
    """Create the base transport for ``config``.

    Raises:
        TransportConstructionError: If the SDK rejects the configuration.
    """
    try:
        return DispatchingApiClient(to_kubernetes_configuration(config), config.request_timeout)
    except Exception as exc:
        log.error("transport_construction_failed", master=config.master_url, error=str(exc))
        raise TransportConstructionError(f"Unable to build Kubernetes transport: {exc}") from exc


def rebind_dispatcher(api_client: k8s_client.ApiClient, dispatcher: DaemonCachedThreadPool) -> k8s_client.ApiClient:
    """Make ``dispatcher`` the pool that runs the client's ``async_req=True`` calls.

    Only the pool changes; host, TLS, auth, and retry settings stay as built.
    """
    # Recent SDK releases guard pool swaps with _pool_lock.
    lock = getattr(api_client, "_pool_lock", None)
    if lock is None:
        api_client._pool = dispatcher
    else:
        with lock:
            api_client._pool = dispatcher
    return api_client


class KubernetesClient:
    """Handle to the Kubernetes API built by ``create_kubernetes_client``.

    Owns its ApiClient and dispatcher; ``close()`` releases both.
    """

    def __init__(self, api_client: DispatchingApiClient, config: AssembledConfig) -> None:
        self.api_client = api_client
        self.config = config
        self._core_v1: k8s_client.CoreV1Api | None = None
        self._lock = threading.Lock()

    @property
    def namespace(self) -> str | None:
        return self.config.namespace

    @property
    def dispatcher(self) -> Any:
        return self.api_client.dispatcher

    @property
    def core_v1(self) -> k8s_client.CoreV1Api:
        with self._lock:
            if self._core_v1 is None:
                self._core_v1 = k8s_client.CoreV1Api(self.api_client)
            return self._core_v1

    def close(self) -> None:
        self.api_client.close()

    def __enter__(self) -> KubernetesClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"KubernetesClient(master={self.config.master_url!r}, namespace={self.namespace!r})"
