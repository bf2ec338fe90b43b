"""Configuration management for the documentation-set processor."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables (DOCSET_*)."""

    # Discovery
    source_extensions: list[str] = [".pod6", ".rakudoc", ".pod"]

    # Rendering
    output_format: str = "hypertext"
    include_source_links: bool = False
    source_link_base: Optional[str] = None

    # Resolution
    external_schemes: list[str] = ["http", "https", "ftp", "mailto", "irc"]

    # Processing
    max_workers: int = 4
    parallel_threshold: int = 4

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    class Config:
        env_prefix = "DOCSET_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
