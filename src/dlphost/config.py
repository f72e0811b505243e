"""Host configuration: discovered paths, env vars, XDG defaults."""

from __future__ import annotations

import logging
import math
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from dlphost.policy.loader import discover_policy_file

logger = logging.getLogger(__name__)


def _default_data_dir() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "dlphost"
    return Path.home() / ".local" / "share" / "dlphost"


def program_dir() -> Path:
    """Directory the host was launched from (the manifest's ``path``)."""
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).resolve().parent
    return Path.cwd()


def discover_log_dir(start: str | Path) -> Path:
    """``<root>/agent/logs`` for the first ancestor holding ``agent/``.

    Falls back to ``$XDG_DATA_HOME/dlphost/logs``.
    """
    start = Path(start).resolve()
    for directory in (start, *start.parents):
        if (directory / "agent").is_dir():
            return directory / "agent" / "logs"
    return _default_data_dir() / "logs"


@dataclass
class HostConfig:
    """Startup configuration for the native host."""

    policy_path: Path | None = None
    log_dir: Path = field(default_factory=lambda: _default_data_dir() / "logs")
    poll_interval: float = 0.2

    @classmethod
    def load(
        cls,
        policy_path: str | Path | None = None,
        log_dir: str | Path | None = None,
        search_from: str | Path | None = None,
    ) -> HostConfig:
        """Resolve configuration: explicit arguments, then env vars, then discovery."""
        start = Path(search_from) if search_from is not None else program_dir()
        config = cls()

        env_policy = os.environ.get("DLPHOST_POLICY")
        if policy_path is not None:
            config.policy_path = Path(policy_path)
        elif env_policy:
            config.policy_path = Path(env_policy)
        else:
            config.policy_path = discover_policy_file(start)

        env_log_dir = os.environ.get("DLPHOST_LOG_DIR")
        if log_dir is not None:
            config.log_dir = Path(log_dir)
        elif env_log_dir:
            config.log_dir = Path(env_log_dir)
        else:
            config.log_dir = discover_log_dir(start)

        env_interval = os.environ.get("DLPHOST_POLL_INTERVAL")
        if env_interval:
            try:
                interval = float(env_interval)
            except ValueError:
                interval = math.nan
            if math.isfinite(interval) and interval > 0:
                config.poll_interval = interval
            else:
                logger.warning(
                    "Ignoring DLPHOST_POLL_INTERVAL=%r; using %.2fs",
                    env_interval,
                    config.poll_interval,
                )

        return config
