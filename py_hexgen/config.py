"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, read from ``HEXGEN_*`` environment variables or ``.env``."""

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Generation
    default_map_width: int = Field(default=40, ge=1, description="Width used when a request omits it")
    default_map_height: int = Field(default=30, ge=1, description="Height used when a request omits it")
    max_map_width: int = Field(default=400, ge=1, description="Largest accepted grid width")
    max_map_height: int = Field(default=300, ge=1, description="Largest accepted grid height")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="'json' or 'console'")

    class Config:
        env_file = ".env"
        env_prefix = "HEXGEN_"
        extra = "ignore"


settings = Settings()
