"""Root logger setup for the command line."""

from __future__ import annotations

import logging
import os

from .errors import ConfigurationError

LOG_LEVEL_ENV = "CLAIMSHIELD_LOG_LEVEL"

# third-party loggers never drop below WARNING
_NOISY_LOGGERS = ("httpx", "httpcore", "hishel", "alembic.runtime.migration")


def log_level_from_env(default: int = logging.INFO) -> int:
    """Level named by ``CLAIMSHIELD_LOG_LEVEL`` (``DEBUG``, ``info``, ...) or ``default``."""

    raw = os.getenv(LOG_LEVEL_ENV)
    if raw is None or not raw.strip():
        return default
    level = logging.getLevelNamesMapping().get(raw.strip().upper())
    if level is None:
        raise ConfigurationError(f"{LOG_LEVEL_ENV} must name a logging level, got {raw!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    Without an explicit ``level`` the environment decides, falling back to INFO.
    Pass ``force=True`` to reconfigure during tests.
    """

    resolved = log_level_from_env() if level is None else level
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
