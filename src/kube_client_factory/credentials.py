"""OAuth credential source resolution and token provider loading."""

from __future__ import annotations

import importlib
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from kube_client_factory.config import (
    CA_CERT_FILE_CONF_SUFFIX,
    CLIENT_CERT_FILE_CONF_SUFFIX,
    CLIENT_KEY_FILE_CONF_SUFFIX,
    OAUTH_TOKEN_CONF_SUFFIX,
    OAUTH_TOKEN_FILE_CONF_SUFFIX,
    OAUTH_TOKEN_PROVIDER_CONF_SUFFIX,
    ClientConf,
)
from kube_client_factory.errors import ConfigurationConflictError, CredentialProviderInstantiationError

log = structlog.get_logger()


@runtime_checkable
class TokenProvider(Protocol):
    """Anything that can hand out a bearer token on demand."""

    def provide_token(self) -> str: ...


# --- CredentialSpec variants ---


@dataclass(frozen=True)
class NoCredential:
    pass


@dataclass(frozen=True)
class TokenFile:
    path: Path


@dataclass(frozen=True)
class TokenValue:
    token: str


@dataclass(frozen=True)
class TokenProviderCredential:
    provider: TokenProvider


CredentialSpec = NoCredential | TokenFile | TokenValue | TokenProviderCredential


@dataclass(frozen=True)
class ResolvedAuth:
    """Outcome of credential resolution for one authentication prefix."""

    credential: CredentialSpec
    ca_cert_file: str | None = None
    client_key_file: str | None = None
    client_cert_file: str | None = None


class TokenProviderRegistry:
    """Maps provider names to no-arg factories.

    Names that were never registered are treated as dotted ``module.ClassName``
    paths and imported on demand.
    """

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[], object]] = {}

    def register(self, name: str, factory: Callable[[], object]) -> None:
        self._factories[name] = factory

    def is_registered(self, name: str) -> bool:
        return name in self._factories

    def create(self, name: str) -> TokenProvider:
        """Instantiate the provider known as ``name``.

        Raises:
            CredentialProviderInstantiationError: If the provider cannot be found,
                cannot be constructed without arguments, raises while being
                constructed, or does not implement ``provide_token``.
        """
        factory = self._factories.get(name) or self._import_factory(name)
        try:
            inspect.signature(factory).bind()
        except TypeError as exc:
            raise CredentialProviderInstantiationError(name, f"no usable no-arg constructor ({exc})") from exc
        except ValueError:
            # Some builtins expose no signature; let the call decide.
            pass
        try:
            instance = factory()
        except Exception as exc:
            raise CredentialProviderInstantiationError(name, f"constructor raised {type(exc).__name__}: {exc}") from exc

        if not isinstance(instance, TokenProvider):
            raise CredentialProviderInstantiationError(name, "object does not implement provide_token()")
        return instance

    def _import_factory(self, name: str) -> Callable[[], object]:
        module_name, _, attr = name.rpartition(".")
        if not module_name or name.startswith("."):
            raise CredentialProviderInstantiationError(name, "not registered and not a dotted class path")
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise CredentialProviderInstantiationError(name, f"module {module_name!r} not found") from exc
        except Exception as exc:
            raise CredentialProviderInstantiationError(
                name, f"importing {module_name!r} raised {type(exc).__name__}: {exc}"
            ) from exc
        factory = getattr(module, attr, None)
        if factory is None or not callable(factory):
            raise CredentialProviderInstantiationError(name, f"class {attr!r} not found in {module_name!r}")
        return factory


default_registry = TokenProviderRegistry()


def resolve_credentials(
    conf: ClientConf,
    auth_conf_prefix: str,
    default_token_file: Path | None = None,
    default_ca_cert_file: Path | None = None,
    registry: TokenProviderRegistry | None = None,
) -> ResolvedAuth:
    """Work out the single credential source configured under ``auth_conf_prefix``.

    The default token file only applies when none of the explicit token file,
    token value, or token provider keys is set, and never counts towards the
    conflict check.
    """
    registry = registry or default_registry
    token_file_key = f"{auth_conf_prefix}.{OAUTH_TOKEN_FILE_CONF_SUFFIX}"
    token_key = f"{auth_conf_prefix}.{OAUTH_TOKEN_CONF_SUFFIX}"
    provider_key = f"{auth_conf_prefix}.{OAUTH_TOKEN_PROVIDER_CONF_SUFFIX}"

    token_file = conf.get_option(token_file_key)
    token_value = conf.get_option(token_key)
    provider_name = conf.get_option(provider_key)

    provider: TokenProvider | None = None
    if provider_name is not None:
        try:
            provider = registry.create(provider_name)
        except CredentialProviderInstantiationError:
            log.error("token_provider_instantiation_failed", provider=provider_name, conf_key=provider_key)
            raise

    explicit = [token_file, token_value, provider]
    if sum(source is not None for source in explicit) > 1:
        raise ConfigurationConflictError([token_file_key, token_key, provider_key])

    credential: CredentialSpec
    if provider is not None:
        credential = TokenProviderCredential(provider)
    elif token_value is not None:
        credential = TokenValue(token_value)
    elif token_file is not None:
        credential = TokenFile(Path(token_file))
    elif default_token_file is not None:
        credential = TokenFile(default_token_file)
    else:
        credential = NoCredential()

    ca_cert_file = conf.get_option(f"{auth_conf_prefix}.{CA_CERT_FILE_CONF_SUFFIX}")
    if ca_cert_file is None and default_ca_cert_file is not None:
        ca_cert_file = str(default_ca_cert_file.absolute())

    return ResolvedAuth(
        credential=credential,
        ca_cert_file=ca_cert_file,
        client_key_file=conf.get_option(f"{auth_conf_prefix}.{CLIENT_KEY_FILE_CONF_SUFFIX}"),
        client_cert_file=conf.get_option(f"{auth_conf_prefix}.{CLIENT_CERT_FILE_CONF_SUFFIX}"),
    )
