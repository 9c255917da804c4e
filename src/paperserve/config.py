"""Settings for the paperserve HTTP server, pipeline and telemetry.

Settings come from an optional YAML file.  Environment variables in the form
``${VAR}`` or ``$VAR`` are expanded before parsing::

    http:
      port: 8787
    summarizer:
      provider: workers-ai
      account_id: ${CLOUDFLARE_ACCOUNT_ID}
      api_token: ${CLOUDFLARE_API_TOKEN}
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from paperserve import __version__


class ConfigError(Exception):
    """Raised when a settings file cannot be read or fails validation."""


class ServerSettings(BaseModel):
    """Identity advertised to MCP clients."""

    name: str = "paperserve"
    version: str = __version__
    instructions: str | None = None


class HttpSettings(BaseModel):
    """Listener and MCP endpoint options."""

    host: str = "127.0.0.1"
    port: int = 8787
    mcp_path: str = "/mcp"
    max_body_bytes: int = Field(default=4 * 1024 * 1024, gt=0)
    json_response: bool = False
    allowed_origins: list[str] | None = None
    stream_buffer: int = Field(default=32, gt=0)


class ArxivSettings(BaseModel):
    """Upstream arXiv export API."""

    api_url: str = "https://export.arxiv.org/api/query"
    timeout: float = 20.0


class SummarizerSettings(BaseModel):
    """Managed inference endpoint used by ``/summarize``.

    ``workers-ai`` calls Cloudflare Workers AI over REST; ``litellm`` sends a
    chat completion to any model LiteLLM supports.
    """

    provider: Literal["workers-ai", "litellm"] = "workers-ai"
    model: str = "@cf/facebook/bart-large-cnn"
    account_id: str | None = Field(default_factory=lambda: os.environ.get("CLOUDFLARE_ACCOUNT_ID"))
    api_token: str | None = Field(default_factory=lambda: os.environ.get("CLOUDFLARE_API_TOKEN"))
    api_base: str | None = None
    max_length: int = Field(default=50, gt=0)
    timeout: float = 60.0


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class TelemetrySettings(BaseModel):
    """Optional OpenTelemetry tracing."""

    enabled: bool = False
    service_name: str = "paperserve"
    otlp_endpoint: str | None = None


class Settings(BaseModel):
    """Top-level settings."""

    server: ServerSettings = Field(default_factory=ServerSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    arxiv: ArxivSettings = Field(default_factory=ArxivSettings)
    summarizer: SummarizerSettings = Field(default_factory=SummarizerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)


def load_settings(path: str | Path | None = None) -> Settings:
    """Read settings from *path*, or return defaults when *path* is ``None``.

    Raises:
        ConfigError: On unreadable files, YAML errors or validation failures.
    """
    if path is None:
        return Settings()

    settings_path = Path(path)
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read {settings_path}: {exc}") from exc

    expanded = os.path.expandvars(raw)

    try:
        data: Any = yaml.safe_load(expanded)
    except yaml.YAMLError as exc:
        raise ConfigError(f"YAML parse error: {exc}") from exc

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError("Settings YAML must be a mapping")

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
