from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str | List[str]) -> List[str]:
    if isinstance(value, list):
        return value
    return [v.strip() for v in str(value).split(",") if v and v.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SHAREGATE_",
        extra="ignore",
    )

    app_name: str = "ShareGate API"
    database_url: str = "sqlite:///./sharegate.db"
    db_echo: bool = False
    log_level: str = "INFO"
    log_dir: str = ""

    # values must come from environment/.env to avoid hardcoding secrets
    jwt_secret: str = ""
    jwt_issuer: str = "sharegate"
    access_token_exp_minutes: int = 24 * 60
    refresh_token_exp_minutes: int = 7 * 24 * 60

    max_login_attempts: int = 5
    lock_minutes: int = 15
    reset_token_minutes: int = 60
    # dev only: echo the plaintext reset token in the reset-request response
    expose_reset_token: bool = False

    share_default_expiry_hours: int = 24
    regenerate_resets_downloads: bool = True
    upload_dir: str = "./uploads"
    max_file_size: int = 50 * 1024 * 1024

    # per-client limits; memory:// is per process, point workers at redis:// to share counters
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    auth_rate_limit: str = "5 per 15 minutes"
    upload_rate_limit: str = "10 per 15 minutes"
    download_rate_limit: str = "50 per 15 minutes"

    seed_admin_email: str = "admin@example.com"
    seed_admin_password: str = ""

    cors_origins_raw: str = "http://localhost:5173"
    enable_docs: bool = True

    @property
    def cors_origins(self) -> List[str]:
        parsed = _split_csv(self.cors_origins_raw)
        return parsed or ["http://localhost:5173"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
