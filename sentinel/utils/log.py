"""Package-wide logging helpers.

All modules log through the ``sentinel`` logger so hosts can configure a single
handler. Verbosity can be raised with ``SENTINEL_DEBUG=true`` or
:func:`set_log_level_to_debug`.
"""

import logging
import os
from typing import Any

LOGGER_NAME = "sentinel"

logger = logging.getLogger(LOGGER_NAME)


def _env_debug_enabled() -> bool:
  return os.getenv("SENTINEL_DEBUG", "").lower() in ("1", "true", "yes")


def configure_logging(level: int = logging.INFO, fmt: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s") -> logging.Logger:
  """Attach a stream handler to the package logger (idempotent)."""
  if not any(getattr(h, "_sentinel_handler", False) for h in logger.handlers):
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    handler._sentinel_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
  logger.setLevel(logging.DEBUG if _env_debug_enabled() else level)
  return logger


def set_log_level_to_debug() -> None:
  logger.setLevel(logging.DEBUG)


def set_log_level_to_info() -> None:
  logger.setLevel(logging.INFO)


def log_debug(msg: str, *args: Any, log_level: int = 1, **kwargs: Any) -> None:
  """Debug log. ``log_level=2`` marks chatty internals that only show under SENTINEL_DEBUG."""
  if log_level > 1 and not _env_debug_enabled():
    return
  logger.debug(msg, *args, **kwargs)


def log_info(msg: str, *args: Any, **kwargs: Any) -> None:
  logger.info(msg, *args, **kwargs)


def log_warning(msg: str, *args: Any, **kwargs: Any) -> None:
  logger.warning(msg, *args, **kwargs)


def log_error(msg: str, *args: Any, **kwargs: Any) -> None:
  logger.error(msg, *args, **kwargs)


def log_exception(msg: str, *args: Any, **kwargs: Any) -> None:
  logger.exception(msg, *args, **kwargs)
