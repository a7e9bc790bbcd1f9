"""Authenticated Kubernetes client construction from layered configuration."""

from kube_client_factory.client_type import ClientType
from kube_client_factory.config import ClientConf
from kube_client_factory.credentials import TokenProvider, TokenProviderRegistry, default_registry
from kube_client_factory.errors import (
    ConfigurationConflictError,
    CredentialProviderInstantiationError,
    KubeClientFactoryError,
    MissingRequiredFieldError,
    TokenFileReadError,
    TransportConstructionError,
)
from kube_client_factory.factory import create_kubernetes_client
from kube_client_factory.logging_config import configure_logging
from kube_client_factory.models import AssembledConfig
from kube_client_factory.transport import KubernetesClient

__all__ = [
    "AssembledConfig",
    "ClientConf",
    "ClientType",
    "ConfigurationConflictError",
    "CredentialProviderInstantiationError",
    "KubeClientFactoryError",
    "KubernetesClient",
    "MissingRequiredFieldError",
    "TokenFileReadError",
    "TokenProvider",
    "TokenProviderRegistry",
    "TransportConstructionError",
    "configure_logging",
    "create_kubernetes_client",
    "default_registry",
]
