from typing import Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "RealtimeRanking"
    app_env: str = "dev"
    log_level: str = "INFO"
    access_log: bool = True

    # host:port, same shape as REDIS_ADDRESS in the deploy env
    redis_address: str = "localhost:6379"
    redis_password: str = ""
    redis_db: int = 0
    redis_pool: int = 10
    redis_socket_timeout: float = 5.0

    # personalization policy
    follow_boost: float = 100.0
    interaction_boost: float = 50.0
    top_k_per_creator: int = 10
    top_m_global: int = 50

    @field_validator("redis_db", "redis_pool", mode="before")
    @classmethod
    def _int_or_default(cls, v, info):
        # unparsable values fall back to the default instead of failing startup
        defaults = {"redis_db": 0, "redis_pool": 10}
        if v is None or v == "":
            return defaults[info.field_name]
        try:
            return int(v)
        except (TypeError, ValueError):
            return defaults[info.field_name]

    @field_validator("redis_address")
    @classmethod
    def _check_address(cls, v: str) -> str:
        v = v.strip()
        host, sep, port = v.rpartition(":")
        if not v or (sep and not host):
            raise ValueError(f"expected host:port, got {v!r}")
        if sep and not (port.isdigit() and 0 < int(port) < 65536):
            raise ValueError(f"port must be a number in 1..65535, got {port!r}")
        return v

    @property
    def redis_host_port(self) -> Tuple[str, int]:
        host, _, port = self.redis_address.rpartition(":")
        if not host:
            # bare hostname, no port
            return port, 6379
        return host, int(port)


settings = Settings()
