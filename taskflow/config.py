from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskflow:taskflow@db:5432/taskflow"
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  log_level: str = "INFO"
  api_docs_enabled: bool = True

  cookie_secure: bool = False
  cookie_domain: str | None = None
  session_ttl_days: int = 14

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):3000$"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,web,testserver"

  csrf_enabled: bool = True
  app_url: str | None = "http://localhost:3000"
  csrf_trusted_origins: str = ""

  redis_url: str | None = None

  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_email_per_minute: int = 20
  rate_limit_signup_ip_per_minute: int = 20
  rate_limit_task_create_per_minute: int = 30
  rate_limit_reorder_per_minute: int = 120
  rate_limit_milestone_create_per_minute: int = 20
  rate_limit_wiki_create_per_minute: int = 20

  invitation_ttl_days: int = 7

  attachment_dir: str = "data/uploads"
  comment_attachment_max_bytes: int = 10 * 1024 * 1024
  comment_attachment_allowed_mime_types: str = "image/jpeg,image/png,image/webp,application/pdf,text/plain,application/zip"

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def attachment_mime_set(self) -> set[str]:
    return {m.strip() for m in self.comment_attachment_allowed_mime_types.split(",") if m.strip()}

  def csrf_origin_list(self) -> list[str]:
    out = [o.strip() for o in self.csrf_trusted_origins.split(",") if o.strip()]
    if self.app_url:
      out.append(self.app_url.strip())
    return out


settings = Settings()
