"""Tests for credential source resolution and the token provider registry."""

from __future__ import annotations

import sys
import types
from pathlib import Path

import pytest
from fakes import AUTH_PREFIX, StaticTokenProvider

from kube_client_factory.config import ClientConf
from kube_client_factory.credentials import (
    NoCredential,
    TokenFile,
    TokenProviderCredential,
    TokenProviderRegistry,
    TokenValue,
    resolve_credentials,
)
from kube_client_factory.errors import ConfigurationConflictError, CredentialProviderInstantiationError

TOKEN_FILE_KEY = f"{AUTH_PREFIX}.oauthTokenFile"
TOKEN_KEY = f"{AUTH_PREFIX}.oauthToken"
PROVIDER_KEY = f"{AUTH_PREFIX}.oauthTokenProvider"


class NeedsArgsProvider:
    def __init__(self, token: str) -> None:
        self.token = token

    def provide_token(self) -> str:
        return self.token


class ExplodingProvider:
    def __init__(self) -> None:
        raise RuntimeError("vault unreachable")

    def provide_token(self) -> str:
        return ""


class NotAProvider:
    pass


class MistypedProvider:
    def __init__(self) -> None:
        self.endpoint = "vault:" + 8200  # type: ignore[operator]

    def provide_token(self) -> str:
        return ""


class TestSingleExplicitSource:
    def test_token_file(self, registry: TokenProviderRegistry) -> None:
        conf = ClientConf({TOKEN_FILE_KEY: "/path/token"})
        auth = resolve_credentials(conf, AUTH_PREFIX, registry=registry)
        assert auth.credential == TokenFile(Path("/path/token"))

    def test_token_value(self, registry: TokenProviderRegistry) -> None:
        conf = ClientConf({TOKEN_KEY: "abc"})
        auth = resolve_credentials(conf, AUTH_PREFIX, registry=registry)
        assert auth.credential == TokenValue("abc")

    def test_registered_provider(self, registry: TokenProviderRegistry) -> None:
        conf = ClientConf({PROVIDER_KEY: "static"})
        auth = resolve_credentials(conf, AUTH_PREFIX, registry=registry)
        assert isinstance(auth.credential, TokenProviderCredential)
        assert auth.credential.provider.provide_token() == "provided-token"

    def test_no_source_and_no_default(self, conf: ClientConf, registry: TokenProviderRegistry) -> None:
        auth = resolve_credentials(conf, AUTH_PREFIX, registry=registry)
        assert auth.credential == NoCredential()

    def test_explicit_source_beats_default_token_file(self, registry: TokenProviderRegistry, token_file: Path) -> None:
        conf = ClientConf({TOKEN_KEY: "abc"})
        auth = resolve_credentials(conf, AUTH_PREFIX, default_token_file=token_file, registry=registry)
        assert auth.credential == TokenValue("abc")

    def test_other_prefix_ignored(self, registry: TokenProviderRegistry) -> None:
        conf = ClientConf({"spark.kubernetes.authentication.driver.oauthToken": "driver-token"})
        auth = resolve_credentials(conf, AUTH_PREFIX, registry=registry)
        assert auth.credential == NoCredential()


class TestDefaultTokenFile:
    def test_used_when_no_explicit_source(
        self, conf: ClientConf, registry: TokenProviderRegistry, token_file: Path
    ) -> None:
        auth = resolve_credentials(conf, AUTH_PREFIX, default_token_file=token_file, registry=registry)
        assert auth.credential == TokenFile(token_file)

    @pytest.mark.parametrize(
        "key,value",
        [(TOKEN_FILE_KEY, "/explicit"), (TOKEN_KEY, "abc"), (PROVIDER_KEY, "static")],
    )
    def test_never_conflicts_with_explicit_source(
        self, registry: TokenProviderRegistry, token_file: Path, key: str, value: str
    ) -> None:
        conf = ClientConf({key: value})
        auth = resolve_credentials(conf, AUTH_PREFIX, default_token_file=token_file, registry=registry)
        assert auth.credential != TokenFile(token_file)


class TestConflicts:
    @pytest.mark.parametrize(
        "values",
        [
            {TOKEN_FILE_KEY: "/path", TOKEN_KEY: "abc"},
            {TOKEN_FILE_KEY: "/path", PROVIDER_KEY: "static"},
            {TOKEN_KEY: "abc", PROVIDER_KEY: "static"},
            {TOKEN_FILE_KEY: "/path", TOKEN_KEY: "abc", PROVIDER_KEY: "static"},
        ],
    )
    def test_two_or_more_sources_conflict(self, registry: TokenProviderRegistry, values: dict[str, str]) -> None:
        with pytest.raises(ConfigurationConflictError) as exc_info:
            resolve_credentials(ClientConf(values), AUTH_PREFIX, registry=registry)
        assert exc_info.value.keys == (TOKEN_FILE_KEY, TOKEN_KEY, PROVIDER_KEY)

    def test_message_names_all_keys(self, registry: TokenProviderRegistry) -> None:
        conf = ClientConf({TOKEN_KEY: "abc", TOKEN_FILE_KEY: "/path"})
        with pytest.raises(ConfigurationConflictError, match="only one of") as exc_info:
            resolve_credentials(conf, AUTH_PREFIX, registry=registry)
        for key in (TOKEN_FILE_KEY, TOKEN_KEY, PROVIDER_KEY):
            assert key in str(exc_info.value)

    def test_empty_token_value_counts_as_present(self, registry: TokenProviderRegistry) -> None:
        conf = ClientConf({TOKEN_KEY: "", TOKEN_FILE_KEY: "/path"})
        with pytest.raises(ConfigurationConflictError):
            resolve_credentials(conf, AUTH_PREFIX, registry=registry)

    def test_empty_token_value_alone_is_selected(self, registry: TokenProviderRegistry, token_file: Path) -> None:
        conf = ClientConf({TOKEN_KEY: ""})
        auth = resolve_credentials(conf, AUTH_PREFIX, default_token_file=token_file, registry=registry)
        assert auth.credential == TokenValue("")


class TestCertificateFiles:
    def test_explicit_ca_cert_wins(self, registry: TokenProviderRegistry, ca_cert_file: Path) -> None:
        conf = ClientConf({f"{AUTH_PREFIX}.caCertFile": "/explicit/ca.crt"})
        auth = resolve_credentials(conf, AUTH_PREFIX, default_ca_cert_file=ca_cert_file, registry=registry)
        assert auth.ca_cert_file == "/explicit/ca.crt"

    def test_default_ca_cert_made_absolute(
        self, conf: ClientConf, registry: TokenProviderRegistry, ca_cert_file: Path
    ) -> None:
        auth = resolve_credentials(conf, AUTH_PREFIX, default_ca_cert_file=ca_cert_file, registry=registry)
        assert auth.ca_cert_file == str(ca_cert_file.absolute())

    def test_no_ca_cert(self, conf: ClientConf, registry: TokenProviderRegistry) -> None:
        assert resolve_credentials(conf, AUTH_PREFIX, registry=registry).ca_cert_file is None

    def test_client_key_and_cert(self, registry: TokenProviderRegistry) -> None:
        conf = ClientConf(
            {f"{AUTH_PREFIX}.clientKeyFile": "/tls/client.key", f"{AUTH_PREFIX}.clientCertFile": "/tls/client.crt"}
        )
        auth = resolve_credentials(conf, AUTH_PREFIX, registry=registry)
        assert auth.client_key_file == "/tls/client.key"
        assert auth.client_cert_file == "/tls/client.crt"


class TestTokenProviderRegistry:
    def test_dynamic_import_by_dotted_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        module = types.ModuleType("acme_tokens")
        module.VaultProvider = StaticTokenProvider  # type: ignore[attr-defined]
        monkeypatch.setitem(sys.modules, "acme_tokens", module)
        provider = TokenProviderRegistry().create("acme_tokens.VaultProvider")
        assert isinstance(provider, StaticTokenProvider)

    def test_registered_name_takes_precedence(self) -> None:
        registry = TokenProviderRegistry()
        registry.register("collections.OrderedDict", StaticTokenProvider)
        assert registry.is_registered("collections.OrderedDict")
        assert isinstance(registry.create("collections.OrderedDict"), StaticTokenProvider)

    def test_each_create_builds_new_instance(self, registry: TokenProviderRegistry) -> None:
        assert registry.create("static") is not registry.create("static")

    def test_missing_module(self) -> None:
        with pytest.raises(CredentialProviderInstantiationError, match="module 'no_such_module' not found"):
            TokenProviderRegistry().create("no_such_module.Provider")

    def test_missing_class(self) -> None:
        with pytest.raises(CredentialProviderInstantiationError, match="class 'NoSuchProvider' not found"):
            TokenProviderRegistry().create("kube_client_factory.credentials.NoSuchProvider")

    def test_bare_unregistered_name(self) -> None:
        with pytest.raises(CredentialProviderInstantiationError, match="not a dotted class path"):
            TokenProviderRegistry().create("vault")

    def test_constructor_requires_arguments(self) -> None:
        registry = TokenProviderRegistry()
        registry.register("needs-args", NeedsArgsProvider)
        with pytest.raises(CredentialProviderInstantiationError, match="no usable no-arg constructor"):
            registry.create("needs-args")

    def test_constructor_raises(self) -> None:
        registry = TokenProviderRegistry()
        registry.register("exploding", ExplodingProvider)
        with pytest.raises(CredentialProviderInstantiationError, match="vault unreachable") as exc_info:
            registry.create("exploding")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_type_error_inside_constructor_body(self) -> None:
        registry = TokenProviderRegistry()
        registry.register("mistyped", MistypedProvider)
        with pytest.raises(CredentialProviderInstantiationError, match="constructor raised TypeError") as exc_info:
            registry.create("mistyped")
        assert "no-arg constructor" not in str(exc_info.value)

    def test_module_failing_at_import(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "broken_tokens.py").write_text("raise RuntimeError('vault sdk missing config')\n")
        monkeypatch.syspath_prepend(str(tmp_path))
        monkeypatch.delitem(sys.modules, "broken_tokens", raising=False)
        expected = "importing 'broken_tokens' raised RuntimeError"
        with pytest.raises(CredentialProviderInstantiationError, match=expected) as exc_info:
            TokenProviderRegistry().create("broken_tokens.Provider")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.parametrize("name", ["..Provider", ".tokens.Provider"])
    def test_relative_path_rejected(self, name: str) -> None:
        with pytest.raises(CredentialProviderInstantiationError, match="not a dotted class path"):
            TokenProviderRegistry().create(name)

    def test_object_without_provide_token(self) -> None:
        registry = TokenProviderRegistry()
        registry.register("not-a-provider", NotAProvider)
        with pytest.raises(CredentialProviderInstantiationError, match="provide_token"):
            registry.create("not-a-provider")

    def test_resolution_surfaces_instantiation_failure(self) -> None:
        conf = ClientConf({PROVIDER_KEY: "no_such_module.Provider"})
        with pytest.raises(CredentialProviderInstantiationError) as exc_info:
            resolve_credentials(conf, AUTH_PREFIX, registry=TokenProviderRegistry())
        assert exc_info.value.provider_name == "no_such_module.Provider"
