"""Logging setup for the raffle service.

`get_logger(name)` configures the root logger on first use. The environment
controls it:

  LOG_LEVEL   root level name (default INFO)
  LOG_FILE    optional file to log to in addition to the console
  LOG_LEVELS  per-logger overrides, e.g. "uvicorn.access=WARNING,vrf_raffle.blockchain=DEBUG"
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured = False


def _parse_level(value: Optional[str], default: int = logging.INFO) -> int:
    if not value:
        return default
    value = value.strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


def parse_level_overrides(spec: Optional[str]) -> Dict[str, int]:
    """Parse "name=LEVEL,other=LEVEL" into a logger name to level mapping.

    Malformed items are skipped.
    """
    overrides: Dict[str, int] = {}
    for item in (spec or '').split(','):
        name, sep, level = item.partition('=')
        if not sep or not name.strip():
            continue
        overrides[name.strip()] = _parse_level(level)
    return overrides


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    overrides: Optional[Dict[str, int]] = None,
) -> None:
    """Install console (and optional file) handlers on the root logger.

    Arguments left as None fall back to LOG_LEVEL, LOG_FILE and LOG_LEVELS.
    Only the first call installs handlers.
    """
    global _configured
    if _configured:
        return

    root_level = _parse_level(level if level is not None else os.getenv('LOG_LEVEL'))
    log_file = log_file if log_file is not None else os.getenv('LOG_FILE', '')
    if overrides is None:
        overrides = parse_level_overrides(os.getenv('LOG_LEVELS'))

    root = logging.getLogger()
    root.setLevel(root_level)
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        except OSError:
            root.exception('Cannot open log file %s; logging to console only', log_file)

    for name, name_level in overrides.items():
        logging.getLogger(name).setLevel(name_level)

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger, configuring logging from the environment on first use."""
    configure_logging()
    return logging.getLogger(name)
