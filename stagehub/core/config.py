"""
Centralized configuration for stagehub

Provides pydantic-based configuration with:
- Environment variable loading (.env support)
- Type validation
- Default values

Usage:
    from stagehub.core.config import get_config

    config = get_config()
    print(config.runtime_dir)
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stagehub.core.stagelibrary.layout import RuntimeDirectoryTree


class StageHubConfig(BaseSettings):
    """
    Configuration of the stage library manager

    All settings can be overridden via environment variables with the
    STAGEHUB_ prefix, e.g. STAGEHUB_RUNTIME_DIR, STAGEHUB_LIBS_EXTRA_DIR.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STAGEHUB_",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Runtime directories
    # ============================================

    runtime_dir: Path = Field(
        default_factory=Path.cwd,
        description="Engine runtime directory; libraries install to <runtime_dir>/stage-libs"
    )

    libs_extra_dir: Optional[Path] = Field(
        default=None,
        description="Base directory of per-library extras (drivers, config)"
    )

    resources_dir: Optional[Path] = Field(
        default=None,
        description="Directory of engine-wide resource files"
    )

    user_libs_dir: Optional[Path] = Field(
        default=None,
        description="Directory of user-provided stage libraries"
    )

    external_resources_dir: Optional[Path] = Field(
        default=None,
        description="Directory exported by the external resources download"
    )

    locks_dir: Optional[Path] = Field(
        default=None,
        description="Directory of per-library lock files (default: <runtime_dir>/.locks)"
    )

    # ============================================
    # Engine / registry
    # ============================================

    engine_version: Optional[str] = Field(
        default=None,
        description="Version of the running engine, used for manifest compatibility"
    )

    registry_file: Optional[Path] = Field(
        default=None,
        description="YAML/JSON registry snapshot used by the CLI"
    )

    # ============================================
    # Downloads
    # ============================================

    download_timeout: int = Field(
        default=300,
        description="Library download timeout in seconds"
    )

    download_max_size: int = Field(
        default=1024 * 1024 * 1024,
        description="Maximum library archive size in bytes"
    )

    download_max_retries: int = Field(
        default=3,
        description="Retries for failed library downloads"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    # ============================================
    # Validators
    # ============================================

    @field_validator(
        "libs_extra_dir", "resources_dir", "user_libs_dir", "external_resources_dir",
        "locks_dir", "registry_file",
        mode="before",
    )
    @classmethod
    def empty_path_is_unset(cls, v):
        """An empty string means the directory is not configured"""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    def to_directory_tree(self) -> RuntimeDirectoryTree:
        """Directory layout passed to the stage library components"""
        return RuntimeDirectoryTree(
            runtime_dir=self.runtime_dir,
            libs_extra_dir=self.libs_extra_dir,
            resources_dir=self.resources_dir,
            user_libs_dir=self.user_libs_dir,
            external_resources_dir=self.external_resources_dir,
            locks_dir=self.locks_dir,
        )


# Global config instance
_config: Optional[StageHubConfig] = None


def get_config(force_reload: bool = False) -> StageHubConfig:
    """
    Get the global configuration instance

    Args:
        force_reload: Force reload configuration from environment

    Returns:
        StageHubConfig instance
    """
    global _config

    if _config is None or force_reload:
        _config = StageHubConfig()

    return _config
