from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    APP_NAME: str = "Wardrobe Outfit Composer"
    APP_ENV: str = "dev"
    API_PREFIX: str = "/v1"
    CORS_ORIGINS: str = "*"
    REDIS_URL: str = "redis://localhost:6379/0"
    JWT_SECRET: str = "change_me"
    JWT_ALG: str = "HS256"
    # Wardrobe service (catalog + outfit persistence)
    WARDROBE_API_URL: str = "http://localhost:3000"
    WARDROBE_API_TIMEOUT_S: float = 10.0
    # Canvas viewport
    COMPOSER_ZOOM_MIN: float = 0.25
    COMPOSER_ZOOM_MAX: float = 4.0
    COMPOSER_WHEEL_ZOOM_STEP: float = 0.1
    COMPOSER_BUTTON_ZOOM_STEP: float = 0.2
    COMPOSER_DEFAULT_ITEM_SIZE: float = 150.0
    # Slot mode
    COMPOSER_DEFAULT_CONFIGURATION: str = "3-part"
    COMPOSER_HISTORY_LIMIT: int = 50
    COMPOSER_UNDOABLE_LOCKS: bool = False
    # Commit pipeline
    COMPOSER_SNAPSHOT_RENDERER: str = "local"
    COMPOSER_SNAPSHOT_TIMEOUT_S: float = 30.0
    COMPOSER_UPLOAD_RETRIES: int = 3
    COMPOSER_UPLOAD_RETRY_DELAY_S: float = 1.0
    # Builder preferences
    COMPOSER_PREFS_TTL_S: int = 2592000

    @property
    def cors_origin_list(self) -> List[str]:
        val = self.CORS_ORIGINS
        if not val: return []
        if val == "*": return ["*"]
        return [v.strip() for v in val.split(",")]

    @property
    def zoom_bounds(self) -> tuple[float, float]:
        return self.COMPOSER_ZOOM_MIN, self.COMPOSER_ZOOM_MAX

settings = Settings()
