import os
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration settings.
    """
    model_config = SettingsConfigDict(env_prefix="PROMPT_OBSERVATORY_", env_file=".env", extra="ignore")

    # Service Info
    service_name: str = "prompt-observatory"
    environment: str = "local"
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Providers
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_cache_ttl_seconds: int = 3600

    # AI gateway (used when a prompt body sets proxy="cloudflare")
    ai_gateway_base_url: Optional[str] = None
    ai_gateway_token: Optional[str] = None

    # Execution logging
    # Empty blob_storage_dir keeps artifacts in memory
    blob_storage_dir: str = ""
    background_finalization: bool = True

    # Paths
    base_dir: str = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    seed_file: str = os.path.join(base_dir, "seed.yaml")


settings = Settings()
