"""Client roles and the timeout keys each one reads."""

from __future__ import annotations

from enum import Enum

from kube_client_factory.config import (
    DRIVER_CLIENT_CONNECTION_TIMEOUT,
    DRIVER_CLIENT_REQUEST_TIMEOUT,
    SUBMISSION_CLIENT_CONNECTION_TIMEOUT,
    SUBMISSION_CLIENT_REQUEST_TIMEOUT,
    ClientConf,
    ConfigEntry,
)


class ClientType(Enum):
    DRIVER = "driver"
    SUBMISSION = "submission"

    @property
    def request_timeout_entry(self) -> ConfigEntry[int]:
        return _TIMEOUT_ENTRIES[self][0]

    @property
    def connection_timeout_entry(self) -> ConfigEntry[int]:
        return _TIMEOUT_ENTRIES[self][1]

    def request_timeout(self, conf: ClientConf) -> int:
        return conf.get(self.request_timeout_entry)

    def connection_timeout(self, conf: ClientConf) -> int:
        return conf.get(self.connection_timeout_entry)

    def timeouts(self, conf: ClientConf) -> tuple[int, int]:
        """Return ``(request_timeout_ms, connection_timeout_ms)`` for this role."""
        return self.request_timeout(conf), self.connection_timeout(conf)


# (request timeout, connection timeout) per role
_TIMEOUT_ENTRIES: dict[ClientType, tuple[ConfigEntry[int], ConfigEntry[int]]] = {
    ClientType.DRIVER: (DRIVER_CLIENT_REQUEST_TIMEOUT, DRIVER_CLIENT_CONNECTION_TIMEOUT),
    ClientType.SUBMISSION: (SUBMISSION_CLIENT_REQUEST_TIMEOUT, SUBMISSION_CLIENT_CONNECTION_TIMEOUT),
}
