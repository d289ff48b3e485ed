from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_data_dir: str = Field("/var/lib/netprov", alias="APP_DATA_DIR")
    sysfs_net_path: str = Field("/sys/class/net", alias="SYSFS_NET_PATH")

    # External commands
    use_sudo: bool = Field(True, alias="USE_SUDO")
    command_timeout: float = Field(15.0, alias="COMMAND_TIMEOUT")
    activation_timeout: float = Field(30.0, alias="ACTIVATION_TIMEOUT")

    # Segment defaults
    wifi_country: Optional[str] = Field(None, alias="WIFI_COUNTRY")
    portal_port: int = Field(80, alias="PORTAL_PORT")
    dhcp_lease_time: str = Field("12h", alias="DHCP_LEASE_TIME")
    captive_dns: bool = Field(False, alias="CAPTIVE_DNS")

    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8080, alias="PORT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, alias="LOG_FILE")
    event_history: int = Field(200, alias="EVENT_HISTORY")

    secret_key: str | None = Field(None, alias="SECRET_KEY")
    admin_token: str | None = Field(None, alias="ADMIN_TOKEN")
    admin_username: str | None = Field(None, alias="ADMIN_USERNAME")
    admin_password_hash: str | None = Field(None, alias="ADMIN_PASSWORD_HASH")


settings = Settings()
