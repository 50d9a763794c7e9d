from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://habits:habits@db:5432/habits"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Every logical date is evaluated in this zone, never the client's.
    REFERENCE_TIMEZONE: str = "America/Mexico_City"

    # Daily current-streak walk stops here and reports the streak as truncated
    STREAK_LOOKBACK_DAYS: int = 60

    # Background recalculation pool used outside of a request
    RECALC_MAX_WORKERS: int = 4

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
