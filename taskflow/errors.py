from __future__ import annotations

import logging

logger = logging.getLogger("taskflow.errors")


def public_error(exc: BaseException | None, fallback: str) -> str:
  """Log the internal error and return a message that is safe to show clients."""
  if exc is not None:
    logger.error("server error: %s", fallback, exc_info=exc)
  return fallback
