"""
Configuration management for the Honeycomb middleware.

Two settings classes share one set of fields and validators:

- HoneycombSettings reads HONEYCOMB_* environment variables and an optional
  .env file. Hosts that wire the middleware from the environment build one
  and pass it as ``settings=``.
- MiddlewareOptions validates explicit constructor options only; the process
  environment is never consulted.

Absent client options are left out of ``client_options()`` so the telemetry
client's own defaults apply.
"""

from typing import Any, Optional, Tuple, Type

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from honeycomb_middleware.errors.exceptions import ConfigurationError

# Options forwarded to the telemetry client factory
CLIENT_OPTION_NAMES: Tuple[str, ...] = ("writekey", "dataset", "api_host")


class HoneycombSettings(BaseSettings):
    """
    Middleware settings loaded from HONEYCOMB_* environment variables.
    
    Every field is optional. A missing writekey or dataset is not an error
    here: the telemetry client decides what to do with an unconfigured
    destination.
    """
    
    writekey: Optional[str] = Field(
        default=None,
        description="Honeycomb team write key"
    )
    dataset: Optional[str] = Field(
        default=None,
        description="Dataset that request events are sent to"
    )
    api_host: Optional[str] = Field(
        default=None,
        description="Collector endpoint override, e.g. https://api.honeycomb.io"
    )
    send_on_error: bool = Field(
        default=False,
        description="Send an event for requests whose app raised, then re-raise"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level used by configure_logging"
    )
    
    model_config = SettingsConfigDict(
        env_prefix="HONEYCOMB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    @field_validator("writekey", "dataset")
    @classmethod
    def validate_optional_text(cls, v: Optional[str]) -> Optional[str]:
        """Strip whitespace; an empty value counts as unset."""
        if v is None:
            return None
        v = v.strip()
        return v or None
    
    @field_validator("api_host")
    @classmethod
    def validate_api_host(cls, v: Optional[str]) -> Optional[str]:
        """Validate that api_host, when set, is an HTTP/HTTPS URL."""
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("api_host must be a valid HTTP/HTTPS URL")
        return v
    
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v
    
    def client_options(self) -> dict[str, str]:
        """
        Options for the telemetry client factory.
        
        Returns:
            Only the client options that are set
        """
        options = {}
        for name in CLIENT_OPTION_NAMES:
            value = getattr(self, name)
            if value is not None:
                options[name] = value
        return options


class MiddlewareOptions(HoneycombSettings):
    """Settings built from explicit constructor options only."""
    
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)


def _configuration_error(message: str, error: ValidationError) -> ConfigurationError:
    """Convert a pydantic ValidationError into a ConfigurationError."""
    invalid_fields = {
        ".".join(str(loc) for loc in item.get("loc", [])): item.get("msg", str(item))
        for item in error.errors()
    }
    return ConfigurationError(message, invalid_fields=invalid_fields)


def build_options(**options: Any) -> MiddlewareOptions:
    """
    Validate explicit middleware options.
    
    Options set to None are treated as absent.
    
    Raises:
        ConfigurationError: If any option is invalid.
    """
    given = {name: value for name, value in options.items() if value is not None}
    try:
        return MiddlewareOptions(**given)
    except ValidationError as e:
        raise _configuration_error("Invalid Honeycomb middleware options", e) from e


def load_settings() -> HoneycombSettings:
    """
    Load settings from the environment and .env file.
    
    Raises:
        ConfigurationError: If any HONEYCOMB_* value is invalid.
    """
    try:
        return HoneycombSettings()
    except ValidationError as e:
        raise _configuration_error("Failed to load Honeycomb settings from environment", e) from e


# Global settings cache
_settings_cache: Optional[HoneycombSettings] = None


def get_settings() -> HoneycombSettings:
    """
    Get the environment-backed settings singleton.
    
    Settings are loaded once and cached for subsequent calls.
    
    Raises:
        ConfigurationError: If any HONEYCOMB_* value is invalid.
    """
    global _settings_cache
    
    if _settings_cache is None:
        _settings_cache = load_settings()
    
    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.
    
    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None
