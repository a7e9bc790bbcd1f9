"""Client configuration lookup, typed entries, and the known Kubernetes keys."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

import yaml

T = TypeVar("T")

# Suffixes appended to a caller-supplied authentication prefix.
OAUTH_TOKEN_FILE_CONF_SUFFIX = "oauthTokenFile"
OAUTH_TOKEN_CONF_SUFFIX = "oauthToken"
OAUTH_TOKEN_PROVIDER_CONF_SUFFIX = "oauthTokenProvider"
CA_CERT_FILE_CONF_SUFFIX = "caCertFile"
CLIENT_KEY_FILE_CONF_SUFFIX = "clientKeyFile"
CLIENT_CERT_FILE_CONF_SUFFIX = "clientCertFile"

KUBERNETES_AUTH_SUBMISSION_CONF_PREFIX = "spark.kubernetes.authentication"
KUBERNETES_AUTH_DRIVER_CONF_PREFIX = "spark.kubernetes.authentication.driver"
KUBERNETES_AUTH_DRIVER_MOUNTED_CONF_PREFIX = "spark.kubernetes.authentication.driver.mounted"

_DEFAULT_TIMEOUT_MS = 10000


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    msg = f"Expected a boolean, got {value!r}."
    raise ValueError(msg)


@dataclass(frozen=True)
class ConfigEntry(Generic[T]):
    """A typed configuration key with a default and an optional value check."""

    key: str
    default: T
    converter: Callable[[str], T]
    check: Callable[[T], bool] | None = None
    check_message: str = ""
    doc: str = ""

    def read(self, raw: str | None) -> T:
        if raw is None:
            return self.default
        try:
            value = self.converter(raw)
        except ValueError as exc:
            msg = f"Invalid value for {self.key}: {exc}"
            raise ValueError(msg) from exc
        if self.check is not None and not self.check(value):
            msg = f"Invalid value {raw!r} for {self.key}: {self.check_message}"
            raise ValueError(msg)
        return value


def _positive(value: int) -> bool:
    return value > 0


def _timeout_entry(key: str, doc: str) -> ConfigEntry[int]:
    return ConfigEntry(
        key=key,
        default=_DEFAULT_TIMEOUT_MS,
        converter=int,
        check=_positive,
        check_message="timeout must be a positive number of milliseconds",
        doc=doc,
    )


KUBERNETES_CONTEXT: ConfigEntry[str | None] = ConfigEntry(
    key="spark.kubernetes.context",
    default=None,
    converter=str,
    doc="Kubeconfig context used for auto-configuration. Empty means the current context.",
)

KUBERNETES_TRUST_CERTIFICATES: ConfigEntry[bool] = ConfigEntry(
    key="spark.kubernetes.trust.certificates",
    default=False,
    converter=_to_bool,
    doc="Trust any API server certificate. Intended for development clusters only.",
)

DRIVER_CLIENT_REQUEST_TIMEOUT = _timeout_entry(
    "spark.kubernetes.driver.requestTimeout",
    "Request timeout in milliseconds for the driver-side client.",
)
DRIVER_CLIENT_CONNECTION_TIMEOUT = _timeout_entry(
    "spark.kubernetes.driver.connectionTimeout",
    "Connection timeout in milliseconds for the driver-side client.",
)
SUBMISSION_CLIENT_REQUEST_TIMEOUT = _timeout_entry(
    "spark.kubernetes.submission.requestTimeout",
    "Request timeout in milliseconds for the submission client.",
)
SUBMISSION_CLIENT_CONNECTION_TIMEOUT = _timeout_entry(
    "spark.kubernetes.submission.connectionTimeout",
    "Connection timeout in milliseconds for the submission client.",
)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _flatten(raw: Mapping[str, Any], prefix: str = "") -> Iterator[tuple[str, str]]:
    for key, value in raw.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            yield from _flatten(value, full_key)
        else:
            yield full_key, _stringify(value)


class ClientConf:
    """Immutable key to string lookup.

    A key is present when it was set, even to an empty string; ``get_option``
    only returns ``None`` for keys that were never set.
    """

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    def get_option(self, key: str) -> str | None:
        return self._values.get(key)

    def contains(self, key: str) -> bool:
        return key in self._values

    def get(self, entry: ConfigEntry[T]) -> T:
        return entry.read(self._values.get(entry.key))

    def with_values(self, values: Mapping[str, str] | None = None, **kwargs: str) -> ClientConf:
        merged = dict(self._values)
        merged.update(values or {})
        merged.update(kwargs)
        return ClientConf(merged)

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ClientConf(keys={sorted(self._values)})"

    @classmethod
    def from_yaml(cls, path: Path) -> ClientConf:
        """Load a YAML file, flattening nested mappings into dotted keys.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            A ClientConf holding every leaf value as a string.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the top level is not a mapping.
        """
        if not path.exists():
            msg = f"Client configuration file not found: {path}."
            raise FileNotFoundError(msg)

        raw = yaml.safe_load(path.read_text())
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            msg = f"Client configuration file {path} must contain a mapping, got {type(raw).__name__}."
            raise ValueError(msg)
        return cls(dict(_flatten(raw)))

