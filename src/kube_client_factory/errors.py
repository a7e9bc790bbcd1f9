"""Errors raised while constructing a Kubernetes client."""

from __future__ import annotations

from collections.abc import Sequence


class KubeClientFactoryError(Exception):
    """Base class for every client construction failure."""


class ConfigurationConflictError(KubeClientFactoryError, ValueError):
    """More than one explicit credential source was configured."""

    def __init__(self, keys: Sequence[str]) -> None:
        self.keys = tuple(keys)
        *head, last = self.keys
        super().__init__(f"OAuth token should be specified via only one of {', '.join(head)} or {last}.")


class CredentialProviderInstantiationError(KubeClientFactoryError):
    """A named token provider could not be loaded or constructed."""

    def __init__(self, provider_name: str, reason: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"Unable to instantiate token provider {provider_name!r}: {reason}")


class MissingRequiredFieldError(KubeClientFactoryError, ValueError):
    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Required field {field!r} is missing.")


class TokenFileReadError(KubeClientFactoryError):
    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Unable to read OAuth token file {path}: {reason}")


class TransportConstructionError(KubeClientFactoryError):
    """The Kubernetes client library rejected the assembled configuration."""
