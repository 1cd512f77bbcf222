"""Reflect Guard — Service configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/reflect-guard/config.yaml
    3. User config:   ~/.reflect-guard/config.yaml
    4. Explicit file passed to ``Settings.load()``
    5. Environment variables prefixed with REFLECT_

The suspicious-activity thresholds and cache TTLs are tuning knobs, not
protocol constants.  ``create_app()`` takes an explicit ``Settings`` and
injects the relevant blocks into each service.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=8400, ge=1024, le=65535)
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    admin_token: str | None = Field(
        default=None,
        description="If set, /admin routes require X-Admin-Token with this value.",
    )


class CacheConfig(BaseModel):
    permission_ttl_seconds: Annotated[float, Field(gt=0, le=86_400)] = Field(
        default=300,
        description="Lifetime of a cached permission bundle (default 5 minutes).",
    )
    premium_status_ttl_seconds: Annotated[float, Field(gt=0, le=86_400)] = Field(
        default=600,
        description="Lifetime of a premium-status-only cache entry (default 10 minutes).",
    )
    sweep_interval_seconds: Annotated[float, Field(gt=0, le=3600)] = Field(
        default=120,
        description="Period of the background pass that evicts expired entries.",
    )


class AuditConfig(BaseModel):
    db_path: Path = Path("~/.reflect-guard/audit.db")
    fallback_capacity: Annotated[int, Field(ge=1, le=100_000)] = Field(
        default=1000,
        description="Entries kept in memory when the durable audit write fails.",
    )
    suspicious_window_seconds: Annotated[int, Field(ge=60, le=86_400)] = 3600
    denial_threshold: Annotated[int, Field(ge=1, le=10_000)] = Field(
        default=10,
        description="Denials in the window that raise a suspicious_activity alert.",
    )
    premium_probe_threshold: Annotated[int, Field(ge=1, le=10_000)] = Field(
        default=5,
        description="Premium-content post denials in the window that raise an unusual_pattern alert.",
    )
    bypass_keyword: str = "bypass"
    background_writes: bool = Field(
        default=True,
        description=(
            "Schedule middleware audit writes as background tasks instead of "
            "awaiting them inline."
        ),
    )


class ModerationRuleConfig(BaseModel):
    name: str
    pattern: str
    severity: Literal["low", "medium", "high"] = "medium"
    action: Literal["warn", "block", "review"] = "warn"
    description: str = ""


class ModerationConfig(BaseModel):
    offensive_words: list[str] = Field(
        default_factory=lambda: ["idiota", "imbecil", "burro", "estúpido", "otário", "babaca"],
        description="Blocked-word list for the risk check; any hit makes premium content high risk.",
    )
    custom_rules: list[ModerationRuleConfig] = Field(default_factory=list)
    caps_ratio_threshold: Annotated[float, Field(gt=0, le=1)] = 0.7
    caps_min_length: Annotated[int, Field(ge=1)] = 20
    special_char_ratio_threshold: Annotated[float, Field(gt=0, le=1)] = 0.3
    max_urls: Annotated[int, Field(ge=0)] = 2
    repeated_char_run: Annotated[int, Field(ge=2)] = 10


class StoreConfig(BaseModel):
    db_path: Path = Path("~/.reflect-guard/app.db")


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REFLECT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    moderation: ModerationConfig = Field(default_factory=ModerationConfig)
    stores: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("audit", "stores", mode="before")
    @classmethod
    def expand_db_paths(cls, v: object) -> object:
        if isinstance(v, dict) and isinstance(v.get("db_path"), str):
            v["db_path"] = Path(v["db_path"]).expanduser()
        return v

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from YAML files + environment variables."""
        data: dict[str, object] = {}

        candidates = [
            Path("/etc/reflect-guard/config.yaml"),
            Path.home() / ".reflect-guard" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml

                with path.open() as f:
                    data.update(yaml.safe_load(f) or {})

        return cls(**data)


# Process-wide instance for the CLI only; the app receives Settings explicitly.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the process-wide instance. Used in tests."""
    global _settings
    _settings = settings
