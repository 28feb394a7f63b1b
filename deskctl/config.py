"""
Configuration management for deskctl.

This module uses Pydantic's BaseSettings to manage configuration
through environment variables. Every setting can be overridden with
a DESKCTL_ prefixed variable or an entry in a local .env file.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    These settings are loaded from environment variables.
    """

    # Application identity
    APP_NAME: str = "rancher-desktop"
    APP_DISPLAY_NAME: str = "Rancher Desktop"
    WINDOWS_EXECUTABLE_NAME: str = "Rancher Desktop.exe"

    # Installation layout overrides
    APP_HOME: str | None = None
    RESOURCES_PATH: str | None = None
    MAIN_EXECUTABLE: str | None = None

    # Virtual machine
    VM_INSTANCE: str = "0"

    # External command handling
    COMMAND_POLL_INTERVAL: float = 0.1  # seconds
    COMMAND_GRACE_PERIOD: float = 5.0  # seconds between terminate and kill

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_prefix="DESKCTL_",
        extra="ignore",
    )


settings = Settings()
