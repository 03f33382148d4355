# artcart/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

class Settings(BaseSettings):
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    DATA_DIR: Path = Path("data")  # where the local key-value file lives
    STORE_FILE: str = "local_storage.csv"

    # keys inside the local store
    CART_KEY: str = "cart"
    SETTINGS_KEY: str = "artwork-data"  # catalog settings blob, read-only for the cart

    DEFAULT_CURRENCY: str = "₪"

    CACHE_TTL_SECONDS: float = 5 * 60
    RENDER_THROTTLE_MS: int = 100
    MIN_QUANTITY: int = 1
    MAX_QUANTITY: int = 99

    METRICS_WINDOW: int = 100  # entries kept per operation
    METRICS_RETENTION_SECONDS: float = 10 * 60
    NOTIFICATION_TTL_SECONDS: float = 3.0

    # Example .env:
    # DATA_DIR=./data
    # DEFAULT_CURRENCY=$

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def store_path(self) -> Path:
        return Path(self.DATA_DIR) / self.STORE_FILE

    @property
    def render_throttle_seconds(self) -> float:
        return self.RENDER_THROTTLE_MS / 1000.0


settings = Settings()
