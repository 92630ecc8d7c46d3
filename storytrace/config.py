from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    HOST: str = "0.0.0.0"
    PORT: int = 8787
    # Directory holding events.ndjson and stats.json
    TRACE_DATA_DIR: str = "./runtime/trace"
    MAX_BODY_SIZE: int = 128 * 1024
    LOG_JSON: bool = True

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
