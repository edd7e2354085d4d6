from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Protocol

from taskflow.config import settings

_UNSAFE_NAME = re.compile(r"[^a-zA-Z0-9._-]")


def safe_file_name(name: str) -> str:
  return _UNSAFE_NAME.sub("_", name) or "file"


def attachment_key(task_id: str, comment_id: str, file_name: str) -> str:
  return f"{task_id}/{comment_id}/{uuid.uuid4().hex}-{safe_file_name(file_name)}"


class AttachmentStore(Protocol):
  async def put(self, key: str, data: bytes, *, content_type: str) -> None: ...

  async def remove(self, key: str) -> None: ...

  def path_for(self, key: str) -> Path: ...


class LocalAttachmentStore:
  """Keeps attachment bytes under a directory on local disk."""

  def __init__(self, root: str | Path) -> None:
    self.root = Path(root)

  def path_for(self, key: str) -> Path:
    p = (self.root / key).resolve()
    if self.root.resolve() not in p.parents:
      raise ValueError(f"attachment key escapes store root: {key}")
    return p

  async def put(self, key: str, data: bytes, *, content_type: str) -> None:
    p = self.path_for(key)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(data)

  async def remove(self, key: str) -> None:
    self.path_for(key).unlink(missing_ok=True)


def get_attachment_store() -> AttachmentStore:
  return LocalAttachmentStore(settings.attachment_dir)
