"""Endpoints, retry policy and environment settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 14158
DEFAULT_EXECUTABLE = "tev"

DEFAULT_SPAWN_ATTEMPTS = 20
DEFAULT_SPAWN_DELAY = 0.25  # seconds, ~5 s total wait


@dataclass(frozen=True)
class Endpoint:
    """A TCP address tev listens on."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @property
    def hostname(self) -> str:
        """The ``host:port`` form tev accepts for ``--hostname``."""
        return f"{self.host}:{self.port}"

    @property
    def is_default(self) -> bool:
        return self.host == DEFAULT_HOST and self.port == DEFAULT_PORT

    @classmethod
    def parse(cls, hostname: str) -> Endpoint:
        """Parse ``host:port``; a bare host gets the default port.

        IPv6 addresses with a port must be bracketed (``[::1]:14158``); an
        unbracketed IPv6 address is taken as a bare host.

        Raises:
            ValueError: If the port is not a valid number.
        """
        hostname = hostname.strip()
        if not hostname.startswith("[") and hostname.count(":") > 1:
            return cls(host=hostname)
        host, sep, port = hostname.rpartition(":")
        if not sep or (host.startswith("[") and not host.endswith("]")):
            return cls(host=hostname.strip("[]") or DEFAULT_HOST)
        if not port.isdigit() or not 0 < int(port) <= 0xFFFF:
            raise ValueError(f"Invalid port in hostname '{hostname}'")
        return cls(host=host.strip("[]") or DEFAULT_HOST, port=int(port))

    def __str__(self) -> str:
        return self.hostname


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded connect retries used while a spawned tev starts up."""

    attempts: int = DEFAULT_SPAWN_ATTEMPTS
    delay: float = DEFAULT_SPAWN_DELAY

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"Retry attempts must be >= 1, got {self.attempts}")
        if self.delay < 0:
            raise ValueError(f"Retry delay must be >= 0, got {self.delay}")


@dataclass
class Settings:
    """Server-side settings, overridable through ``TEV_*`` variables."""

    endpoint: Endpoint = field(default_factory=Endpoint)
    executable: str = DEFAULT_EXECUTABLE
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        endpoint = Endpoint()
        if env.get("TEV_HOSTNAME"):
            endpoint = Endpoint.parse(env["TEV_HOSTNAME"])

        retry = RetryPolicy(
            attempts=int(env.get("TEV_SPAWN_ATTEMPTS") or DEFAULT_SPAWN_ATTEMPTS),
            delay=float(env.get("TEV_SPAWN_DELAY") or DEFAULT_SPAWN_DELAY),
        )
        return cls(
            endpoint=endpoint,
            executable=env.get("TEV_EXECUTABLE") or DEFAULT_EXECUTABLE,
            retry=retry,
        )
