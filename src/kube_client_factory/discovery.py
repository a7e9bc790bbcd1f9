"""Auto-discovery of a base client configuration from the ambient environment."""

from __future__ import annotations

import os
import threading
from pathlib import Path

import structlog
from kubernetes import client as k8s_client
from kubernetes.config import ConfigException, list_kube_config_contexts, load_incluster_config, load_kube_config

from kube_client_factory.models import AssembledConfig

log = structlog.get_logger()

SERVICE_ACCOUNT_NAMESPACE_FILE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")

_BEARER_PREFIX = "bearer "


def _strip_bearer(token: str | None) -> str | None:
    if token is None:
        return None
    if token[: len(_BEARER_PREFIX)].lower() == _BEARER_PREFIX:
        return token[len(_BEARER_PREFIX) :]
    return token


def _api_key(configuration: k8s_client.Configuration) -> str | None:
    # kubeconfig loaders store the token under "authorization", in-cluster under "BearerToken"
    return configuration.api_key.get("authorization") or configuration.api_key.get("BearerToken")


class RefreshHookTokenProvider:
    """Token provider backed by a kubernetes ``Configuration`` refresh hook.

    Kubeconfig exec plugins, OIDC users, and projected service account tokens
    all refresh through this hook, so the discovered credential keeps working
    after the static token would have expired.
    """

    def __init__(self, configuration: k8s_client.Configuration) -> None:
        self._configuration = configuration
        self._lock = threading.Lock()

    def provide_token(self) -> str:
        with self._lock:
            self._configuration.refresh_api_key_hook(self._configuration)
            token = _strip_bearer(_api_key(self._configuration))
        if token is None:
            msg = "Refresh hook did not produce a token"
            raise RuntimeError(msg)
        return token


def _from_kubernetes_configuration(
    configuration: k8s_client.Configuration,
    namespace: str | None,
    context: str | None,
) -> AssembledConfig:
    provider = None
    token = _strip_bearer(_api_key(configuration))
    if configuration.refresh_api_key_hook is not None:
        provider = RefreshHookTokenProvider(configuration)
        token = None
    return AssembledConfig(
        master_url=configuration.host,
        namespace=namespace,
        context=context,
        ca_cert_file=configuration.ssl_ca_cert,
        client_key_file=configuration.key_file,
        client_cert_file=configuration.cert_file,
        trust_certs=not configuration.verify_ssl,
        oauth_token=token,
        oauth_token_provider=provider,
    )


def default_kubeconfig_path() -> str:
    return os.environ.get("KUBECONFIG", "~/.kube/config")


class AmbientDiscovery:
    """Builds a base configuration the way kubectl would find one.

    Tries the kubeconfig file first (optionally scoped to a named context),
    then the in-cluster service account, and otherwise returns an empty base.
    Configuration is loaded into a private ``Configuration`` object so the
    kubernetes SDK's process-wide default is never touched.
    """

    def __init__(self, kubeconfig: str | None = None) -> None:
        self._kubeconfig = kubeconfig

    def __call__(self, context: str | None = None) -> AssembledConfig:
        kubeconfig = self._kubeconfig or default_kubeconfig_path()
        try:
            return self._from_kubeconfig(kubeconfig, context)
        except ConfigException as exc:
            log.debug("kubeconfig_unavailable", kubeconfig=kubeconfig, reason=str(exc))
            if context:
                # A named context must come from the kubeconfig.
                raise

        try:
            return self._from_incluster()
        except ConfigException as exc:
            log.debug("incluster_config_unavailable", reason=str(exc))

        log.warning("no_ambient_kubernetes_config", kubeconfig=kubeconfig)
        return AssembledConfig()

    def _from_kubeconfig(self, kubeconfig: str, context: str | None) -> AssembledConfig:
        configuration = k8s_client.Configuration()
        load_kube_config(
            config_file=kubeconfig,
            context=context,
            client_configuration=configuration,
            persist_config=False,
        )
        contexts, current = list_kube_config_contexts(config_file=kubeconfig)
        selected = context or current.get("name")
        namespace = None
        for entry in contexts:
            if entry.get("name") == selected:
                namespace = (entry.get("context") or {}).get("namespace")
                break
        log.info("discovered_kubeconfig", kubeconfig=kubeconfig, context=selected, namespace=namespace)
        return _from_kubernetes_configuration(configuration, namespace, selected)

    def _from_incluster(self) -> AssembledConfig:
        configuration = k8s_client.Configuration()
        load_incluster_config(client_configuration=configuration)
        namespace = None
        if SERVICE_ACCOUNT_NAMESPACE_FILE.is_file():
            namespace = SERVICE_ACCOUNT_NAMESPACE_FILE.read_text().strip() or None
        log.info("discovered_incluster_config", namespace=namespace)
        return _from_kubernetes_configuration(configuration, namespace, None)
