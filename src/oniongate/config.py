"""
Service configuration.

Settings come from defaults, the environment and command-line overrides.
The public port is read from ``PORT`` (as set by the hosting platform); a
present but unusable value is a startup error rather than a silent
fallback to the default. ``LOG_LEVEL`` selects the log level.
"""

import os
import re
from dataclasses import dataclass, replace
from typing import List, Mapping, Optional

from oniongate.discovery import DEFAULT_INITIAL_DELAY, DEFAULT_TIMEOUT, DEFAULT_RETRY_INTERVAL
from oniongate.listener import DEFAULT_SHUTDOWN_TIMEOUT
from oniongate.runtime.data import StartupError
from oniongate.supervisor import DEFAULT_MAX_ATTEMPTS, DEFAULT_BACKOFF

DEFAULT_PORT = 8080
DEFAULT_ONION_PORT = 3000
DEFAULT_ARTI_CONFIG = "/etc/arti/onionservice.toml"
DEFAULT_NICKNAME = "demo"

_PORT_RE = re.compile(r"\+?[0-9]+")


def parse_port(raw: Optional[str], default: int = DEFAULT_PORT, name: str = "PORT") -> int:
    """
    Parse a port number from an environment value.

    :param raw: The raw value, ``None`` when the variable is unset
    :param default: Returned when the value is absent or blank
    :param name: Variable name used in error messages
    :raises StartupError: If the value is not an integer in 0..65535
    """
    if raw is None or not raw.strip():
        return default

    if not _PORT_RE.fullmatch(raw):
        raise StartupError(f"Unable to parse {name} as a port number: {raw!r}")

    port = int(raw)
    if port > 65535:
        raise StartupError(f"Unable to parse {name} as a port number: {raw!r} is out of range")
    return port


@dataclass
class Settings:
    """Everything the orchestrator needs to start the service."""

    public_host: str = "0.0.0.0"
    public_port: int = DEFAULT_PORT
    onion_host: str = "127.0.0.1"
    onion_port: int = DEFAULT_ONION_PORT

    arti_binary: str = "arti"
    arti_config: str = DEFAULT_ARTI_CONFIG
    nickname: str = DEFAULT_NICKNAME

    # Helper supervision
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    restart_backoff: float = DEFAULT_BACKOFF

    # Onion address discovery
    discovery_initial_delay: float = DEFAULT_INITIAL_DELAY
    discovery_timeout: float = DEFAULT_TIMEOUT
    discovery_retry_interval: float = DEFAULT_RETRY_INTERVAL

    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Settings":
        """
        Build settings from ``environ`` (defaults to ``os.environ``).

        Keyword overrides are applied last; ``None`` values are ignored so
        unset command-line options fall through.
        """
        if environ is None:
            environ = os.environ

        settings = cls(public_port=parse_port(environ.get("PORT")))
        if environ.get("LOG_LEVEL", "").strip():
            settings.log_level = environ["LOG_LEVEL"].strip().upper()

        return replace(settings, **{k: v for k, v in overrides.items() if v is not None})

    @property
    def helper_command(self) -> List[str]:
        """Long-running helper: ``arti proxy -c <config>``."""
        return [self.arti_binary, "proxy", "-c", self.arti_config]

    @property
    def query_command(self) -> List[str]:
        """Address query: ``arti -c <config> hss --nickname <name> onion-address``."""
        return [self.arti_binary, "-c", self.arti_config, "hss", "--nickname", self.nickname, "onion-address"]
