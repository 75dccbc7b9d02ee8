from functools import lru_cache

from fastapi import Depends, Request
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Annotated

from taskflow.core.exceptions import StartupError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str
    database_echo: bool = False
    create_tables_on_startup: bool = True

    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]
    static_dir: str | None = None

    # Capability flags; deployments (dev, staging, prod) differ only in these
    status_field: bool = True
    completed_at_tracking: bool = True
    metrics_enabled: bool = False
    health_check_database: bool = True
    fail_fast: bool = True

    cache_enabled: bool = False
    redis_dsn: str | None = None
    l1_maxsize: int = 2048
    l1_ttl_seconds: int = 60  # default L1 TTL
    l2_ttl_seconds: int = 300  # default Redis TTL
    cache_namespace: str = "taskflow:"
    redis_pool_size: int = 5

    @property
    def tracks_completion(self) -> bool:
        return self.status_field and self.completed_at_tracking


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise StartupError(
            f"Invalid configuration: {', '.join(missing)}"
            " (is DATABASE_URL set in the environment?)"
        ) from e


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was built with."""
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
