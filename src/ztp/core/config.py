from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGED_META_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "meta"


def _default_bundles_dir() -> Path:
    return Path.home() / ".ztp" / "templates"


class TemplatesConfig(BaseModel):
    bundles_dir: Path = Field(default_factory=_default_bundles_dir)
    meta_templates_dir: Path = PACKAGED_META_TEMPLATES_DIR
    meta_template_suffix: str = Field(default=".templ", min_length=1)
    strict_parameters: bool = True

    @field_validator("bundles_dir", "meta_templates_dir", mode="before")
    @classmethod
    def _expand_path(cls, v: Any) -> Path:
        return Path(str(v)).expanduser().resolve()

    @field_validator("meta_template_suffix")
    @classmethod
    def _normalize_suffix(cls, v: str) -> str:
        v = v.strip()
        return v if v.startswith(".") else f".{v}"


class ObservabilityConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation_size_mb: int = Field(default=100, ge=1)
    log_retention_days: int = Field(default=30, ge=1)
    otel_service_name: str = "ztp-templates"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class MCPConfig(BaseModel):
    transport: Literal["stdio", "sse", "streamable-http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("transport", mode="before")
    @classmethod
    def _normalize_transport(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return "streamable-http" if v == "http" else v
        return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "Zero-Touch Provisioning Templates"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    templates: TemplatesConfig = Field(default_factory=TemplatesConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    mcp: MCPConfig = Field(default_factory=MCPConfig)

    # Flat MCP_TRANSPORT and MCP_ADDRESS variables of older deployments.
    mcp_transport: str | None = None
    mcp_address: str | None = None

    @model_validator(mode="after")
    def apply_legacy_env(self) -> Settings:
        update: dict[str, Any] = {}
        if self.mcp_transport:
            update["transport"] = self.mcp_transport
        if self.mcp_address:
            host, _, port = self.mcp_address.rpartition(":")
            if host:
                update["host"] = host
            if port.isdigit():
                update["port"] = int(port)
        if update:
            self.mcp = MCPConfig.model_validate({**self.mcp.model_dump(), **update})
        return self

    @model_validator(mode="after")
    def validate_environment(self) -> Settings:
        if self.environment == "production" and self.debug:
            raise ValueError("Debug must be disabled in production")
        return self

    def export_safe_config(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


@lru_cache
def get_settings() -> Settings:
    return Settings()
