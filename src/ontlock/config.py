"""Environment-driven settings.

ONTLOCK_MODE       development|dev or production|prod (default: production)
ONTLOCK_DIR        directory holding ont.lock (default: current directory)
ONTLOCK_LOG_LEVEL  log level for the command line (default: INFO)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from ontlock.codes import Mode

logger = logging.getLogger(__name__)

MODE_ENV = "ONTLOCK_MODE"
DIR_ENV = "ONTLOCK_DIR"
LOG_LEVEL_ENV = "ONTLOCK_LOG_LEVEL"

_MODE_ALIASES = {
    "development": Mode.DEVELOPMENT,
    "dev": Mode.DEVELOPMENT,
    "production": Mode.PRODUCTION,
    "prod": Mode.PRODUCTION,
}


@dataclass(frozen=True)
class Settings:
    mode: Mode
    lock_dir: Path
    log_level: str


def _mode_from_env(environ: Mapping[str, str]) -> Mode:
    raw = environ.get(MODE_ENV)
    if raw is None or not raw.strip():
        return Mode.PRODUCTION
    mode = _MODE_ALIASES.get(raw.strip().lower())
    if mode is None:
        # Fail closed
        logger.warning("Unrecognized %s=%r, using production mode", MODE_ENV, raw)
        return Mode.PRODUCTION
    return mode


def resolve_mode(
    mode: Optional[Union[Mode, str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Mode:
    """Pick the gate mode: an explicit argument wins, then ONTLOCK_MODE, then production.

    Raises:
        ValueError: if an explicit ``mode`` is not a recognized mode name
    """
    if mode is not None:
        if isinstance(mode, Mode):
            return mode
        resolved = _MODE_ALIASES.get(str(mode).strip().lower())
        if resolved is None:
            raise ValueError(f"Unknown mode {mode!r}; expected development or production")
        return resolved
    return _mode_from_env(os.environ if environ is None else environ)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from ``environ`` (default: the process environment)."""
    env = os.environ if environ is None else environ
    lock_dir = env.get(DIR_ENV) or os.getcwd()
    log_level = (env.get(LOG_LEVEL_ENV) or "INFO").upper()
    return Settings(
        mode=_mode_from_env(env),
        lock_dir=Path(lock_dir),
        log_level=log_level,
    )
