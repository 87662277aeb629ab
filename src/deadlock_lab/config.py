"""Application configuration from environment variables.

Like a Unix process, the app takes its settings from ``KEY=VALUE``
string pairs in its environment.  Only the outer layer (the web
server) is configurable; the analysers take no settings at all.

    ``DEADLOCK_LAB_HOST``          interface to bind (default ``127.0.0.1``)
    ``DEADLOCK_LAB_PORT``          port to listen on (default ``8080``)
    ``DEADLOCK_LAB_DEBUG``         ``1``/``true``/``yes`` enables debug mode
    ``DEADLOCK_LAB_SCENARIOS``     JSON file of scenarios (default: built-in seeds)
    ``DEADLOCK_LAB_LOG_CAPACITY``  audit entries kept in memory (default ``500``)
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from deadlock_lab.logging import DEFAULT_CAPACITY

_PREFIX = "DEADLOCK_LAB_"
_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})
_MAX_PORT = 65535


def _int_var(environ: Mapping[str, str], name: str, default: int, upper: int | None = None) -> int:
    """Parse a positive integer variable, keeping *default* when unset."""
    raw = environ.get(f"{_PREFIX}{name}")
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        msg = f"{_PREFIX}{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None
    if value < 1 or (upper is not None and value > upper):
        msg = f"{_PREFIX}{name} out of range: {value}"
        raise ValueError(msg)
    return value


@dataclass(frozen=True)
class Config:
    """Settings for the web application."""

    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    scenarios_path: Path | None = None
    log_capacity: int = DEFAULT_CAPACITY

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "Config":
        """Build a config from an environment mapping (e.g. ``os.environ``).

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable holds an unparseable value.

        """
        defaults = cls()
        raw_debug = environ.get(f"{_PREFIX}DEBUG", "").strip().lower()
        if raw_debug not in _TRUE | _FALSE:
            msg = f"{_PREFIX}DEBUG must be a boolean flag, got {raw_debug!r}"
            raise ValueError(msg)

        raw_path = environ.get(f"{_PREFIX}SCENARIOS")
        return cls(
            host=environ.get(f"{_PREFIX}HOST", defaults.host),
            port=_int_var(environ, "PORT", defaults.port, _MAX_PORT),
            debug=raw_debug in _TRUE,
            scenarios_path=Path(raw_path) if raw_path else None,
            log_capacity=_int_var(environ, "LOG_CAPACITY", defaults.log_capacity),
        )
