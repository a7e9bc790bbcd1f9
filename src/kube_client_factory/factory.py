"""Builds authenticated Kubernetes clients from layered configuration.

Authentication keys are read as a caller-supplied prefix plus a fixed set of
suffixes, so the same code serves the submission client, the driver, and any
other component that carries its own credentials.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from kube_client_factory.assembler import Discovery, ProcessTunables, assemble_config
from kube_client_factory.client_type import ClientType
from kube_client_factory.config import KUBERNETES_CONTEXT, KUBERNETES_TRUST_CERTIFICATES, ClientConf
from kube_client_factory.credentials import TokenProviderRegistry, resolve_credentials
from kube_client_factory.dispatcher import new_dispatcher
from kube_client_factory.models import ClientConfigOverrides
from kube_client_factory.transport import KubernetesClient, build_api_client, rebind_dispatcher

log = structlog.get_logger()


def create_kubernetes_client(
    master: str,
    namespace: str | None,
    auth_conf_prefix: str,
    client_type: ClientType,
    conf: ClientConf,
    default_service_account_token: Path | None = None,
    default_service_account_ca_cert: Path | None = None,
    *,
    discovery: Discovery | None = None,
    tunables: ProcessTunables | None = None,
    registry: TokenProviderRegistry | None = None,
) -> KubernetesClient:
    """Create a Kubernetes client for ``master``.

    Args:
        master: API server URL. Required.
        namespace: Namespace override; ``None`` keeps the discovered namespace.
        auth_conf_prefix: Prefix for the authentication keys, e.g.
            ``spark.kubernetes.authentication``.
        client_type: Role whose timeout keys apply.
        conf: Configuration lookup.
        default_service_account_token: Token file used only when no explicit
            credential is configured.
        default_service_account_ca_cert: CA file used when ``caCertFile`` is unset.
        discovery: Base configuration source; defaults to kubeconfig / in-cluster.
        tunables: Process-wide settings; defaults to ``os.environ``.
        registry: Token provider registry; defaults to the module registry.

    Returns:
        A KubernetesClient whose async requests run on a dedicated daemon pool.

    Raises:
        ConfigurationConflictError: More than one explicit credential source.
        CredentialProviderInstantiationError: The token provider cannot be built.
        MissingRequiredFieldError: ``master`` is empty.
        TransportConstructionError: The SDK rejects the assembled configuration.
    """
    auth = resolve_credentials(
        conf,
        auth_conf_prefix,
        default_token_file=default_service_account_token,
        default_ca_cert_file=default_service_account_ca_cert,
        registry=registry,
    )
    request_timeout_ms, connection_timeout_ms = client_type.timeouts(conf)

    overrides = ClientConfigOverrides(
        master=master,
        request_timeout_ms=request_timeout_ms,
        connection_timeout_ms=connection_timeout_ms,
        trust_certs=conf.get(KUBERNETES_TRUST_CERTIFICATES),
        namespace=namespace,
        context=conf.get(KUBERNETES_CONTEXT) or None,
        credential=auth.credential,
        ca_cert_file=auth.ca_cert_file,
        client_key_file=auth.client_key_file,
        client_cert_file=auth.client_cert_file,
    )
    config = assemble_config(overrides, discovery=discovery, tunables=tunables)
    log.debug("kubernetes_client_config", client_type=client_type.value, config=config.redacted_json())

    api_client = build_api_client(config)
    dispatcher = new_dispatcher()
    rebind_dispatcher(api_client, dispatcher)
    log.info(
        "kubernetes_client_created",
        master=config.master_url,
        namespace=config.namespace,
        client_type=client_type.value,
    )
    return KubernetesClient(api_client, config)
