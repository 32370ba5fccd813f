from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "TeamChat"
    API_V1_STR: str = "/api/v1"
    DATABASE_URL: str = "sqlite:///./teamchat.db"

    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # Realtime settings
    CHANNEL_HISTORY_LIMIT: int = 200  # Most recent messages sent on join_channel
    MESSAGE_PAGE_LIMIT_MAX: int = 100
    TYPING_TIMEOUT_SECONDS: int = 5  # Advertised to clients, not enforced server-side
    ENFORCE_CHANNEL_MEMBERSHIP: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'

settings = Settings()
