from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Subgraphs
    exchange_subgraph_url: str = "https://api.thegraph.com/subgraphs/name/ubeswap/ubeswap"
    blocks_subgraph_url: str = "https://api.thegraph.com/subgraphs/name/ubeswap/celo-blocks"
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    subgraph_retry_attempts: int = Field(default=1, description="Attempts per query on transport errors")
    circuit_breaker_threshold: int = 3
    circuit_breaker_timeout: int = 60

    # Pagination windows (indexer result-size limits)
    split_query_page_size: int = 100
    blocks_page_size: int = 500
    snapshots_page_size: int = 1000
    block_window_seconds: int = 600

    # Cache staleness; None keeps entries for the life of the process
    cache_ttl_seconds: Optional[float] = Field(default=None, description="Per-account cache TTL")

    # Backend
    backend_host: str = "0.0.0.0"
    backend_port: int = 8004
    environment: str = Field(default="development", description="dev/staging/production")
    cors_origins: str = Field(default="http://localhost:3000", description="Comma separated origins")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("subgraph_retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v):
        return max(v, 1)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

settings = Settings()
