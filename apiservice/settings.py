import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # API Configuration
    api_base_url: str = Field(default="http://localhost:8000", alias="API_BASE_URL")
    request_timeout: float = Field(default=120.0, alias="API_REQUEST_TIMEOUT")
    debug: bool = Field(default=False, alias="API_DEBUG")
    coalesce_requests: bool = Field(default=False, alias="API_COALESCE_REQUESTS")

    # Cache Configuration
    cache_backend: str = Field(default="memory", alias="CACHE_BACKEND")
    cache_ttl_seconds: int = Field(default=300, alias="CACHE_TTL_SECONDS")
    cache_max_size: int = Field(default=100, alias="CACHE_MAX_SIZE")
    cache_key_strategy: str = Field(default="default", alias="CACHE_KEY_STRATEGY")
    cache_database_url: str = Field(
        default="sqlite+aiosqlite:///./api_cache.db", alias="CACHE_DATABASE_URL"
    )
    cache_database_echo: bool = Field(default=False, alias="CACHE_DATABASE_ECHO")

    # Downloads
    download_dir: str = Field(default="downloads", alias="DOWNLOAD_DIR")

    # Endpoints

    @property
    def sign_in_url(self) -> str:
        return f"{self.api_base_url}/signin"

    @property
    def sign_up_url(self) -> str:
        return f"{self.api_base_url}/signup"

    @property
    def refresh_session_url(self) -> str:
        return f"{self.api_base_url}/token/refresh"

    @property
    def grades_url(self) -> str:
        return f"{self.api_base_url}/folders"

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment (after .env is loaded)"""
        return cls.model_validate(dict(os.environ))


global_settings = Settings.from_env()
