"""
Application Settings
===================

Prerender settings and environment configuration using Pydantic Settings.
Every pipeline instance keeps its own settings object, so internal names
(library global, bundle filename, anchor id) never leak between renders.
"""

import re
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Prerender settings with environment variable support."""

    # Application Configuration
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Sandbox Configuration
    document_url: str = Field(
        default="http://localhost", description="Default URL reported by window.location"
    )
    anchor_id: str = Field(
        default="PRERENDER_INJECT", description="Id of the temporary placeholder anchor element"
    )

    # Nested Build Configuration
    nested_build_name: str = Field(default="prerender", description="Name of the nested build")
    library_name: str = Field(
        default="PRERENDER_RESULT", description="Global bound to the entry exports"
    )
    bundle_filename: str = Field(
        default="ssr-bundle.py", description="Internal name of the main bundle asset"
    )
    define_name: str = Field(default="PRERENDER", description="Compile-time prerender flag")
    style_plugin_pattern: str = Field(
        default="StyleExtract",
        description="Case-insensitive pattern matching plugin class names carried into the nested build",
    )
    output_path: Optional[str] = Field(
        default=None, description="Write prerendered HTML here from the CLI instead of stdout"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("bundle_filename")
    @classmethod
    def validate_bundle_filename(cls, v: str) -> str:
        """Bundle filenames are asset keys, never paths."""
        v = re.sub(r"^(?:\.?/)+", "", v)
        if not v:
            raise ValueError("Bundle filename cannot be empty")
        return v

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="PRERENDER_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
