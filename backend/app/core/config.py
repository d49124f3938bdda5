from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "copywriter-gateway"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/copywriter.db"
    APP_AUTO_CREATE_TABLES: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Shared secret for /api/admin
    ADMIN_TOKEN: str = ""

    # Quota
    DAILY_LIMIT: int = 3
    ALLOWED_LENGTHS: list[int] = [1000, 2000, 3000]

    # Generation provider
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com/v1"
    ANTHROPIC_VERSION: str = "2023-06-01"
    GENERATION_MODEL: str = "claude-haiku-4-5-20251001"
    GENERATION_TEMPERATURE: float = 0.7
    GENERATION_TIMEOUT_SECONDS: float = 120.0

    # Pricing (USD per 1M tokens)
    PRICE_INPUT_PER_MILLION: float = 0.8
    PRICE_OUTPUT_PER_MILLION: float = 4.0
    USD_PLN_RATE: float = 4.05

    version: str = "0.1.0"

    @property
    def sqlite(self) -> bool:
        return self.APP_DATABASE_DSN.startswith("sqlite")


settings = Settings()
