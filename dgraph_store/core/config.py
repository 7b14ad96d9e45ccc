"""
Configuration module for dgraph-store.

Uses pydantic-settings for environment-based configuration of the
Dgraph connection (host, port, compression and drop-all deadline).
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field maps to an upper-case env var of the same name,
    e.g. DGRAPH_HOST or DGRAPH_PORT.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===========================================
    # DGRAPH CONNECTION
    # ===========================================
    dgraph_host: str = Field(default="localhost", description="Dgraph Alpha hostname")
    dgraph_port: int = Field(default=9080, description="Dgraph Alpha gRPC port")
    dgraph_use_compression: bool = Field(
        default=True,
        description="Negotiate gzip compression on the gRPC channel",
    )
    dgraph_verify_on_connect: bool = Field(
        default=True,
        description="Request the server version when connecting",
    )

    # ===========================================
    # OPERATION DEADLINES
    # ===========================================
    dgraph_drop_all_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Deadline in seconds for the drop-all alteration",
    )

    @property
    def dgraph_address(self) -> str:
        """Get the host:port address dialled by the client."""
        return f"{self.dgraph_host}:{self.dgraph_port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
