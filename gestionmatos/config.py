from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "GestionMatos"

    secret_key: str = "dev_secret"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    database_url: str = "sqlite:///./gestionmatos.db"

    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    log_level: str = "INFO"

    # per client address; 0 turns the limiter off
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 15 * 60
    gzip_minimum_size: int = 1000

    # .env is optional; unknown keys are ignored
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
