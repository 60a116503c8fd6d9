from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


class ApiSettings(BaseModel):
    base_url: str = "http://localhost:5000"
    timeout: float | None = Field(default=None, gt=0)
    user_agent: str = "iam-console"

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if "\r" in v or "\n" in v:
            raise ValueError("CRLF injection detected in base_url")
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        return v.rstrip("/")


class SessionConfig(BaseModel):
    backend: Literal["file", "memory"] = "file"
    path: str = "~/.iam-console/session.json"


class ConsoleSettings(BaseModel):
    refetch_after_mutation: bool = True
    banner_seconds: float = Field(default=2.0, ge=0)


class ConsoleConfig(BaseModel):
    api: ApiSettings = Field(default_factory=ApiSettings)
    session: SessionConfig = Field(default_factory=SessionConfig)
    console: ConsoleSettings = Field(default_factory=ConsoleSettings)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
