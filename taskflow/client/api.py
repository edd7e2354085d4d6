from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from taskflow.security import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

REORDER_FALLBACK_ERROR = "Failed to reorder tasks."


class TaskFlowApiError(RuntimeError):
  def __init__(self, *, status_code: int, message: str) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.message = message


@dataclass
class ReorderResult:
  ok: bool
  error: str | None = None
  status_code: int | None = None


def error_message(res: httpx.Response) -> str | None:
  try:
    payload = res.json()
  except ValueError:
    return None
  detail = payload.get("detail") if isinstance(payload, dict) else None
  if isinstance(detail, str) and detail.strip():
    return detail
  if isinstance(detail, dict) and isinstance(detail.get("message"), str):
    return detail["message"]
  return None


class TaskFlowClient:
  """Thin async wrapper over the TaskFlow HTTP API."""

  def __init__(
    self,
    base_url: str = "http://localhost:8000",
    *,
    session_id: str | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float = 20,
  ) -> None:
    self._owns_client = client is None
    self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
    if session_id:
      self._client.cookies.set(SESSION_COOKIE_NAME, session_id)

  async def __aenter__(self) -> TaskFlowClient:
    return self

  async def __aexit__(self, *exc: Any) -> None:
    await self.aclose()

  async def aclose(self) -> None:
    if self._owns_client:
      await self._client.aclose()

  async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
    res = await self._client.request(method, path, **kwargs)
    if res.status_code >= 400:
      raise TaskFlowApiError(status_code=res.status_code, message=error_message(res) or f"HTTP {res.status_code}")
    return res.json() if res.content else None

  async def login(self, email: str, password: str) -> dict[str, Any]:
    return await self._request_json("POST", "/auth/login", json={"email": email, "password": password})

  async def board(self, project_id: str, *, milestone_id: str | None = None) -> dict[str, Any]:
    params = {"milestoneId": milestone_id} if milestone_id else None
    return await self._request_json("GET", f"/projects/{project_id}/board", params=params)

  async def create_task(self, project_id: str, column_id: str, title: str) -> dict[str, Any]:
    return await self._request_json("POST", "/tasks", json={"projectId": project_id, "columnId": column_id, "title": title})

  async def reorder(self, project_id: str, columns: Sequence[dict[str, Any]]) -> ReorderResult:
    """POST the full board arrangement. Never raises for HTTP or transport failures."""
    try:
      res = await self._client.post("/tasks/reorder", json={"projectId": project_id, "columns": list(columns)})
    except httpx.HTTPError as exc:
      logger.warning("reorder request failed: %s", exc)
      return ReorderResult(ok=False, error=None)
    if res.is_success:
      return ReorderResult(ok=True, status_code=res.status_code)
    return ReorderResult(ok=False, error=error_message(res), status_code=res.status_code)
