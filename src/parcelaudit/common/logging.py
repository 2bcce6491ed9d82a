"""Root logger setup for import runs, background jobs and the registry client."""

from __future__ import annotations

import logging
from typing import Final

from parcelaudit.config.env import optional_env_var
from parcelaudit.config.errors import ConfigurationError

LOG_LEVEL_VAR: Final[str] = "PARCELAUDIT_LOG_LEVEL"

# HTTP and migration libraries log every request and revision at INFO
NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "hishel", "alembic")


def resolve_log_level(level: int | str | None = None) -> int:
    """Numeric level from ``level``, else ``PARCELAUDIT_LOG_LEVEL``, else INFO."""

    if isinstance(level, int):
        return level
    name = level or optional_env_var(LOG_LEVEL_VAR)
    if name is None:
        return logging.INFO
    resolved = logging.getLevelNamesMapping().get(name.strip().upper())
    if resolved is None:
        raise ConfigurationError(
            f"{LOG_LEVEL_VAR} must be a logging level name, got {name!r}",
            variables=[LOG_LEVEL_VAR],
        )
    return resolved


def configure_logging(*, level: int | str | None = None, force: bool = False) -> int:
    """Initialise the root logger and return the level in effect.

    Import runs and jobs log through module loggers. Above DEBUG, the HTTP
    client, cache and migration loggers are held at WARNING so a batch log
    shows declarations rather than requests.
    """

    effective = resolve_log_level(level)
    logging.basicConfig(
        level=effective,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=force,
    )
    quiet = logging.WARNING if effective > logging.DEBUG else logging.NOTSET
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
    return effective
