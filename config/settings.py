"""JellyScan configuration using pydantic-settings with env var and YAML file support.

Precedence (highest to lowest):
1. Explicit overrides (command-line flags)
2. JELLYSCAN_-prefixed environment variables
3. YAML config file (/config/jellyscan.yml, or the path in JELLYSCAN_CONFIG_FILE)
4. Defaults defined below

Required: JELLYSCAN_URL, JELLYSCAN_TOKEN; missing either causes an immediate exit.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Optional

import pydantic
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from jellyfin.client import JellyfinClient
from jellyfin.models import RefreshMode
from shared_lib.path_mapper import PathRewriter, PathRule

log = logging.getLogger("JellyScan.config")

DEFAULT_CONFIG_FILE = "/config/jellyscan.yml"
CONFIG_FILE_ENV = "JELLYSCAN_CONFIG_FILE"

_LOG_LEVELS = ("trace", "debug", "info", "warning", "error")


def config_file_path() -> str:
    return os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)


class JellyScanSettings(BaseSettings):
    """
    JellyScan configuration with validation.

    Required:
        url: Jellyfin/Emby server URL (e.g., http://192.168.1.100:8096)
        token: API key

    Optional tunables:
        metadata_refresh_mode: None, ValidationOnly, Default or FullRefresh (default: FullRefresh)
        refresh_metadata: Fall back to library enumeration + refresh when targeted
                          scans fail (default: True)
        path_rules: Ordered rewrite rules from local paths to server paths
        request_timeout: Total HTTP timeout in seconds (default: 30.0, range: 1.0-300.0)
        connect_timeout: HTTP connect timeout in seconds (default: 5.0, range: 0.5-60.0)
        backoff_delays: Seconds before each targeted-scan retry (default: 5, 15, 30)
        page_size: Items per page when enumerating a library (default: 1000)
        queue_size: Items buffered between pager and matcher (default: one page)
        log_level: trace, debug, info, warning or error (default: info)
    """

    model_config = SettingsConfigDict(
        env_prefix="JELLYSCAN_",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    # Required, no defaults
    url: str
    token: str

    metadata_refresh_mode: RefreshMode = RefreshMode.FULL_REFRESH
    refresh_metadata: bool = True

    # Path rewrite rules, usually from YAML; env accepts a JSON array
    path_rules: list[PathRule] = Field(default_factory=list)

    request_timeout: float = Field(default=30.0, ge=1.0, le=300.0)
    connect_timeout: float = Field(default=5.0, ge=0.5, le=60.0)

    backoff_delays: list[float] = Field(default_factory=lambda: [5.0, 15.0, 30.0])
    page_size: int = Field(default=1000, ge=1, le=10000)
    queue_size: Optional[int] = Field(default=None, ge=1)

    log_level: str = "info"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Return sources in priority order: overrides > env > YAML."""
        yaml_source = YamlConfigSettingsSource(settings_cls, yaml_file=config_file_path())
        return (init_settings, env_settings, yaml_source)

    @field_validator("url", mode="after")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate url is a valid HTTP/HTTPS URL."""
        if not v:
            raise ValueError("url is required")
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v.rstrip("/")  # Normalize: remove trailing slash

    @field_validator("token", mode="after")
    @classmethod
    def validate_token(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("token is required")
        return v.strip()

    @field_validator("metadata_refresh_mode", mode="before")
    @classmethod
    def validate_refresh_mode(cls, v: Any) -> RefreshMode:
        return RefreshMode.parse(v)

    @field_validator("refresh_metadata", mode="before")
    @classmethod
    def validate_boolean(cls, v):
        """Ensure boolean fields are actual booleans, not truthy strings."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            lower = v.lower()
            if lower in ("true", "1", "yes"):
                return True
            if lower in ("false", "0", "no"):
                return False
            raise ValueError(f"Invalid boolean value: {v}")
        raise ValueError(f"Expected boolean, got {type(v).__name__}")

    @field_validator("backoff_delays", mode="after")
    @classmethod
    def validate_backoff_delays(cls, v: list[float]) -> list[float]:
        if any(delay < 0 for delay in v):
            raise ValueError("backoff_delays must not be negative")
        if len(v) > 10:
            raise ValueError("backoff_delays allows at most 10 retries")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v):
        if isinstance(v, str) and v.lower() in _LOG_LEVELS:
            return v.lower()
        raise ValueError(f"log_level must be one of {_LOG_LEVELS}, got: {v}")

    def build_rewriter(self) -> Optional[PathRewriter]:
        """Return a PathRewriter for the configured rules, or None when there are none."""
        if not self.path_rules:
            return None
        return PathRewriter(self.path_rules)

    def build_client(self) -> JellyfinClient:
        return JellyfinClient(
            self.url,
            self.token,
            timeout=self.request_timeout,
            connect_timeout=self.connect_timeout,
        )

    def log_config(self) -> None:
        """Log configuration with masked token for security."""
        if len(self.token) > 8:
            masked = self.token[:4] + "****" + self.token[-4:]
        else:
            masked = "****"
        log.info(
            f"JellyScan config: url={self.url}, token={masked}, "
            f"refresh_metadata={self.refresh_metadata}, "
            f"refresh_mode={self.metadata_refresh_mode.value}, "
            f"path_rules={len(self.path_rules)}, "
            f"backoff_delays={self.backoff_delays}, "
            f"page_size={self.page_size}, "
            f"timeouts={self.connect_timeout}s/{self.request_timeout}s"
        )
        if not self.refresh_metadata:
            log.info("Enumeration fallback disabled: events the targeted scan cannot resolve will fail")


def _missing_env_names(exc: pydantic.ValidationError) -> list[str]:
    missing: list[str] = []
    for error in exc.errors():
        if error.get("type") == "missing":
            loc = error.get("loc", ())
            if loc:
                missing.append(f"JELLYSCAN_{str(loc[0]).upper()}")
    return missing


def validate_settings(values: dict) -> tuple[Optional[JellyScanSettings], Optional[str]]:
    """
    Validate a settings dictionary and return JellyScanSettings or an error message.

    Environment variables and the YAML file still apply beneath *values*.

    Returns:
        Tuple of (JellyScanSettings, None) on success,
        or (None, error_message) on validation failure
    """
    try:
        return JellyScanSettings(**values), None
    except pydantic.ValidationError as e:
        errors = []
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(f"{field}: {error['msg']}")
        return None, "; ".join(errors)


def load_settings(**overrides: Any) -> JellyScanSettings:
    """Load settings, exiting with a helpful message if required values are missing.

    Args:
        **overrides: Highest-priority values (e.g., from command-line flags).
                     ``None`` values are ignored.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        return JellyScanSettings(**values)
    except pydantic.ValidationError as exc:
        missing = _missing_env_names(exc)
        if missing:
            names = ", ".join(missing)
            print(
                f"\nMissing required configuration: {names}\n"
                f"Set these as environment variables or add them to {config_file_path()}\n"
                f"Example:\n"
                f"  export JELLYSCAN_URL=http://localhost:8096\n"
                f"  export JELLYSCAN_TOKEN=your-api-key\n",
                file=sys.stderr,
            )
        else:
            print(f"\nConfiguration error:\n{exc}\n", file=sys.stderr)
        sys.exit(2)
