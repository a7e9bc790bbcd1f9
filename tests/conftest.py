"""Shared test fixtures for all test modules."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeDiscovery, StaticTokenProvider

from kube_client_factory.assembler import ProcessTunables
from kube_client_factory.config import ClientConf
from kube_client_factory.credentials import TokenProviderRegistry


@pytest.fixture
def conf() -> ClientConf:
    return ClientConf()


@pytest.fixture
def tunables() -> ProcessTunables:
    """Tunables backed by a private dict so tests never touch os.environ."""
    return ProcessTunables({})


@pytest.fixture
def discovery() -> FakeDiscovery:
    return FakeDiscovery()


@pytest.fixture
def registry() -> TokenProviderRegistry:
    registry = TokenProviderRegistry()
    registry.register("static", StaticTokenProvider)
    return registry


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    path = tmp_path / "token"
    path.write_text("file-token\n")
    return path


@pytest.fixture
def ca_cert_file(tmp_path: Path) -> Path:
    path = tmp_path / "ca.crt"
    path.write_text("-----BEGIN CERTIFICATE-----\n")
    return path
