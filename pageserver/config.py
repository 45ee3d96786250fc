from ipaddress import ip_address
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", populate_by_name=True)

    index_path: str = Field(default="index.html", alias="WEB_INDEX_PATH")
    port: int = Field(default=3000, ge=0, le=65535, alias="WEB_PORT")
    addr: str = Field(default="127.0.0.1", alias="WEB_ADDR")
    metrics_port: int = Field(default=3001, ge=0, le=65535, alias="METRICS_PORT")
    metrics_addr: str | None = Field(default=None, alias="METRICS_ADDR")
    tls: bool = Field(default=False, alias="ENABLE_TLS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    keep_alive_timeout: int = Field(default=5, ge=1, alias="KEEP_ALIVE_TIMEOUT")
    graceful_shutdown_timeout: int = Field(default=30, ge=1, alias="GRACEFUL_SHUTDOWN_TIMEOUT")

    @field_validator("addr", "metrics_addr")
    @classmethod
    def _check_ip_literal(cls, value: str | None) -> str | None:
        if value is None:
            return value
        # Raises ValueError for anything that is not an IPv4/IPv6 literal.
        return str(ip_address(value.strip()))

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def index_file(self) -> Path:
        return Path(self.index_path)

    @property
    def metrics_host(self) -> str:
        return self.metrics_addr or self.addr
