"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (DOCSEARCH_ prefix)
  3. Default values
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class BackendSettings(BaseModel):
    """Connection settings for the search cluster."""

    hosts: list[str] = Field(default_factory=lambda: ["http://localhost:9200"], description="Node URLs")
    username: str | None = Field(default=None, description="HTTP basic-auth username")
    password: str | None = Field(default=None, description="HTTP basic-auth password")
    api_key: str | None = Field(default=None, description="API key (Authorization: ApiKey)")
    bearer_token: str | None = Field(default=None, description="Bearer token (Authorization: Bearer)")
    verify_certs: bool = Field(default=True, description="Verify TLS certificates")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")

    @field_validator("hosts", mode="before")
    @classmethod
    def _parse_hosts(cls, v: Any) -> list[str]:
        """Parse hosts from JSON string (env var) or list."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(h) for h in parsed]
            except (json.JSONDecodeError, TypeError):
                pass
            # Single host as plain string
            return [v] if v else []
        return list(v)


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="console", description="Log format: json, console")


class Settings(BaseSettings):
    """Root settings.

    Configuration is loaded from environment variables with the DOCSEARCH_ prefix.
    Nested settings use double underscores: DOCSEARCH_BACKEND__USERNAME=elastic

    Example:
        DOCSEARCH_BACKEND__HOSTS='["http://es1:9200", "http://es2:9200"]'
        DOCSEARCH_BACKEND__PASSWORD=elastic123
        DOCSEARCH_INDEX=products
    """

    model_config = {
        "env_prefix": "DOCSEARCH_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    index: str = Field(default="products", description="Default target index")
    backend: BackendSettings = Field(default_factory=BackendSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file override environment variables key by key;
        nested sections are merged, so a password from the environment still
        applies when the file only lists hosts.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
