"""Configuration module for the RouterOS gateway.

Implements Pydantic v2 Settings for configuration management with support for:
- Environment variables (ROUTEROS_GATEWAY_* prefix)
- YAML/TOML configuration files
- Command-line argument overrides
- Fail-fast validation at startup

Configuration priority (later overrides earlier):
1. Built-in defaults
2. Configuration file (YAML/TOML)
3. .env file
4. Environment variables
5. Command-line arguments
"""

import re
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
    YamlConfigSettingsSource,
)

# RouterOS address-list / scheduler names used inside generated scripts
_DEVICE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# RouterOS duration such as "1d", "12h", "1d12h30m"
_DURATION_PATTERN = re.compile(r"^(\d+w)?(\d+d)?(\d+h)?(\d+m)?(\d+s)?$")

# Config file suffix -> model_config key read by the matching settings source
_CONFIG_FILE_KEYS = {".yaml": "yaml_file", ".yml": "yaml_file", ".toml": "toml_file"}


class Settings(BaseSettings):
    """Application configuration with sensible defaults.

    Example:
        # Load from environment only
        settings = Settings()

        # Override specific values
        settings = Settings(device_timeout_seconds=5.0, debug=True)
    """

    model_config = SettingsConfigDict(
        env_prefix="ROUTEROS_GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown fields
    )

    # ========================================
    # Application Settings
    # ========================================

    debug: bool = Field(default=False, description="Enable debug mode with verbose logging")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    log_format: Literal["json", "text"] = Field(default="json", description="Log output format")

    # ========================================
    # HTTP Surface
    # ========================================

    http_host: str = Field(
        default="127.0.0.1",
        description="HTTP server bind address (0.0.0.0 for all interfaces)",
    )

    http_port: int = Field(default=3002, ge=1, le=65535, description="HTTP server port")

    # ========================================
    # RouterOS Integration
    # ========================================

    device_timeout_seconds: float = Field(
        default=15.0, ge=1.0, le=120.0, description="Connect/request timeout for device calls"
    )

    legacy_tls_port: int = Field(
        default=8729, ge=1, le=65535, description="Legacy API port that implies API-SSL"
    )

    rest_tls_port: int = Field(
        default=443, ge=1, le=65535, description="REST port on which https is used"
    )

    # ========================================
    # Billing Automation
    # ========================================

    authorized_list: str = Field(
        default="authorized-dhcp-users", description="Address-list holding paying subscribers"
    )

    pending_list: str = Field(
        default="pending-dhcp-users", description="Address-list for expired, still-leased subscribers"
    )

    pending_timeout: str = Field(
        default="1d", description="Timeout of pending address-list entries (RouterOS duration)"
    )

    scheduler_name_prefix: str = Field(
        default="deactivate-dhcp-", description="Prefix of deactivation scheduler job names"
    )

    device_timezone: str | None = Field(
        default=None,
        description="IANA time zone of the routers' clocks (default: gateway local time)",
    )

    serialize_upserts: bool = Field(
        default=True,
        description="Serialize find-then-replace upserts per router and subscriber address",
    )

    # ========================================
    # Router Directory
    # ========================================

    directory_url: str | None = Field(
        default="http://localhost:3001",
        description="Base URL of the panel service that stores router records",
    )

    directory_file: Path | None = Field(
        default=None,
        description="YAML/JSON file with router records (used instead of directory_url)",
    )

    directory_timeout_seconds: float = Field(
        default=10.0, ge=1.0, le=60.0, description="Timeout for router directory lookups"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File sources read nothing unless yaml_file/toml_file is configured
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # ========================================
    # Validators
    # ========================================

    @field_validator("authorized_list", "pending_list", "scheduler_name_prefix")
    @classmethod
    def validate_device_name(cls, v: str) -> str:
        """Names end up inside generated device scripts."""
        if not _DEVICE_NAME_PATTERN.match(v):
            raise ValueError(
                f"'{v}' must start with a letter or digit and contain only "
                "letters, digits, '.', '_' or '-'"
            )
        return v

    @field_validator("pending_timeout")
    @classmethod
    def validate_pending_timeout(cls, v: str) -> str:
        """Validate RouterOS duration format."""
        if not v or not _DURATION_PATTERN.match(v):
            raise ValueError(f"pending_timeout must be a RouterOS duration like '1d', got '{v}'")
        return v

    @field_validator("device_timezone")
    @classmethod
    def validate_device_timezone(cls, v: str | None) -> str | None:
        """Validate IANA time zone name."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: '{v}'") from e
        return v

    @model_validator(mode="after")
    def validate_directory(self) -> "Settings":
        """A router directory source is required."""
        if not self.directory_url and self.directory_file is None:
            raise ValueError("Either directory_url or directory_file must be configured")
        return self

    # ========================================
    # Helper Methods
    # ========================================

    @property
    def device_tz(self) -> ZoneInfo | None:
        """Time zone used for scheduler start dates, None for local time."""
        return ZoneInfo(self.device_timezone) if self.device_timezone else None

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        data = self.model_dump()
        if data.get("directory_file") is not None:
            data["directory_file"] = str(data["directory_file"])
        return data


# ========================================
# Global Settings Instance
# ========================================

_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings
    _settings = settings


def load_settings_from_file(config_file: Path | str) -> Settings:
    """Load settings from a YAML or TOML configuration file.

    Environment variables still override values from the file.

    Args:
        config_file: Path to configuration file

    Returns:
        Settings instance loaded from file

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file format is invalid

    Example:
        settings = load_settings_from_file("config/gateway.yaml")
        set_settings(settings)
    """
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    file_key = _CONFIG_FILE_KEYS.get(suffix)
    if file_key is None:
        raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .toml")

    class FileSettings(Settings):
        model_config = SettingsConfigDict(**{file_key: config_path})

    return FileSettings()
