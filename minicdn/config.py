"""Server configuration via pydantic-settings."""

import os
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MINICDN_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Listener – all interfaces, fixed port
    HOST: str = "0.0.0.0"
    PORT: int = 8180

    # Serving root, relative to the process working directory
    STATIC_DIR: str = "static"

    # Serve `<file>.gz` siblings to clients that accept gzip
    PRECOMPRESSED_GZIP: bool = True

    # Bodies smaller than this are never compressed on the fly
    COMPRESSION_MINIMUM_SIZE: int = 32

    # Logging filter, `target=level` directives separated by commas
    LOG_FILTER: str = "minicdn=info,uvicorn=info"

    @property
    def base_url(self) -> str:
        """Return the URL the server announces on startup."""
        host = f"[{self.HOST}]" if ":" in self.HOST else self.HOST
        return f"http://{host}:{self.PORT}/"


def _build_settings() -> Settings:
    """Build settings, resolving a relative serving root against the cwd."""
    s = Settings()
    if not os.path.isabs(s.STATIC_DIR):
        s.STATIC_DIR = str(Path.cwd() / s.STATIC_DIR)
    return s


settings = _build_settings()
