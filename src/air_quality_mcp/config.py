from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    openaq_api_key: Optional[str] = None
    openaq_base_url: str = "https://api.openaq.org/v2"
    request_timeout: float = 10.0
    default_radius_km: float = 25.0
    default_max_stations: int = 10
    retry_attempts: int = 1
    retry_base_delay: float = 1.0
    retry_multiplier: float = 2.0
    max_readings_per_station: int = 20
    port: int = 8001
    log_dir: str = "logs"


config = Config()
