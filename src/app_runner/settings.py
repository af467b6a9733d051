from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Runner configuration loaded from Environment Variables or .env file.
    """

    RECEPTOR_URL: str = "http://receptor.192.168.11.11.xip.io"
    RECEPTOR_USERNAME: str | None = None
    RECEPTOR_PASSWORD: str | None = None
    REQUEST_TIMEOUT: float = 30.0

    SYSTEM_DOMAIN: str = "192.168.11.11.xip.io"
    LRP_DOMAIN: str = "lattice"
    HEALTHCHECK_DOWNLOAD_URL: str = "http://file_server.service.dc1.consul:8080/v1/static/healthcheck.tgz"

    model_config = SettingsConfigDict(env_prefix="APP_RUNNER_", env_file=".env")


@lru_cache
def get_settings() -> AppSettings:
    """
    Creates a singleton instance of AppSettings.
    Uses lru_cache to ensure the .env file is read only once.
    """
    return AppSettings()
