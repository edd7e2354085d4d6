from __future__ import annotations

import logging
from urllib.parse import urlsplit

from fastapi import Request

from taskflow.config import settings

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})


def _origin_of(url: str) -> str | None:
  parts = urlsplit(url.strip())
  if not parts.scheme or not parts.netloc:
    return None
  return f"{parts.scheme}://{parts.netloc}".lower()


def trusted_origins(request: Request) -> set[str]:
  out = {o.rstrip("/").lower() for o in settings.cors_origin_list() + settings.csrf_origin_list()}
  # Same-origin callers (the API's own host) are always allowed.
  out.add(f"{request.url.scheme}://{request.url.netloc}".lower())
  return out


def origin_allowed(request: Request) -> bool:
  """Cookie-authenticated writes must come from a trusted origin.

  Requests without Origin or Referer (non-browser clients) pass; browsers
  always send one of them on cross-site writes.
  """
  if not settings.csrf_enabled or request.method.upper() in SAFE_METHODS:
    return True
  raw = request.headers.get("origin") or request.headers.get("referer")
  if not raw or raw == "null":
    return not raw
  origin = _origin_of(raw)
  if origin and origin in trusted_origins(request):
    return True
  logger.warning("csrf: rejected %s %s from origin %s", request.method, request.url.path, raw)
  return False
