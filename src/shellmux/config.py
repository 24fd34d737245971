"""Configuration management module"""
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)

from .exception import ConfigError

DEFAULT_CONFIG = """[server]
base_url = "http://127.0.0.1:8000"
session_path = "/terminal/ws/terminal"
heartbeat = 30.0

[reconnect]
max_attempts = 5
delay = 2.0

[terminal]
cols = 80
rows = 10
welcome_banner = true

[logging]
level = "INFO"
console = false
"""


def get_instance_path() -> Path:
    """Get the current instance path from environment or default"""
    instance_path = os.environ.get("SHELLMUX_INSTANCE_PATH")
    if instance_path:
        return Path(instance_path).expanduser()
    return Path.home() / ".shellmux"


def get_config_file() -> Path | None:
    """Get config file path if it exists"""
    config_file = get_instance_path() / "config.toml"
    if config_file.exists():
        return config_file
    return None


class ServerSettings(BaseModel):
    """Backend endpoint settings"""
    base_url: str = "http://127.0.0.1:8000"
    session_path: str = "/terminal/ws/terminal"
    heartbeat: float | None = Field(
        default=30.0,
        description="Websocket ping interval in seconds, None disables pings"
    )

    @field_validator('session_path')
    @classmethod
    def validate_session_path(cls, value: str) -> str:
        if not value.startswith('/'):
            return '/' + value
        return value


class ReconnectSettings(BaseModel):
    """Automatic reconnection policy"""
    max_attempts: int = Field(default=5, ge=0)
    delay: float = Field(default=2.0, gt=0)


class TerminalSettings(BaseModel):
    """Initial terminal geometry and cosmetics"""
    cols: int = Field(default=80, ge=1)
    rows: int = Field(default=10, ge=1)
    welcome_banner: bool = True


class LoggingSettings(BaseModel):
    level: str = "INFO"
    console: bool = False


class Settings(BaseSettings):
    """System configuration settings"""

    server: ServerSettings = ServerSettings()
    reconnect: ReconnectSettings = ReconnectSettings()
    terminal: TerminalSettings = TerminalSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_prefix="SHELLMUX_",
        env_nested_delimiter="__",
        case_sensitive=False,
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
        """Customize settings sources to include TOML file"""
        config_file = get_config_file()
        if config_file:
            toml_settings = TomlConfigSettingsSource(
                settings_cls, toml_file=config_file
            )
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                toml_settings,
                file_secret_settings,
            )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


def load_settings(instance_path: Path | None = None) -> Settings:
    """Load settings for an instance directory

    Args:
        instance_path: Instance directory; overrides SHELLMUX_INSTANCE_PATH

    Returns:
        Validated Settings

    Raises:
        ConfigError: If config.toml is unreadable or fails validation
    """
    if instance_path is not None:
        os.environ["SHELLMUX_INSTANCE_PATH"] = str(instance_path)
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    except ValueError as e:
        # tomllib.TOMLDecodeError is a ValueError
        raise ConfigError(f"Failed to parse config.toml: {e}") from e
