from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://fitplan:fitplan@db:5432/fitplan"
    APP_ENV: str = "development"

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None

    # Program window
    DEFAULT_DURATION_DAYS: int = 28
    MIN_DURATION_DAYS: int = 7
    MAX_DURATION_DAYS: int = 56

    # Collaborator defaults when no row exists for the user
    DEFAULT_TRUST_SCORE: int = 50
    DEFAULT_CAN_GENERATE: bool = True
    DEFAULT_CAN_ADAPT: bool = False
    USER_STATE_WINDOW_DAYS: int = 30

    KNOWLEDGE_VERSION: str = "v1"

    # What happens to phases/days of a superseded structure on rebuild:
    #   "archive" — keep the rows, stamp superseded_at
    #   "delete"  — hard delete them
    STRUCTURE_RETENTION: str = "archive"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
