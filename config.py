from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RECIPE_PLANNER_", env_file=".env", extra="ignore"
    )

    env: Env = Env.local
    log_level: str = "INFO"
    db_url: str = "sqlite+aiosqlite:///recipe_planner.db"

    recipe_api_url: str = "https://api.spoonacular.com"
    recipe_api_key: str = ""
    request_timeout: float = 30

    firebase_database_url: str = "https://recipe-planner-default-rtdb.firebaseio.com"
    firebase_api_key: str = ""

    page_size: int = 20
    search_debounce: float = 0.5
    cache_max_age_days: int = 7
    recently_viewed_limit: int = 10
