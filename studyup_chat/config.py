# studyup_chat/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    PROJECT_NAME: str = "StudyUp Realtime"
    PROJECT_VERSION: str = "1.0.0"
    PROJECT_DESCRIPTION: str = "Presence and chat delivery service for the StudyUp platform"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REDIS_HOST: str
    REDIS_PORT: int
    DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # upper bound on a single message write before the sender gets message:error
    MESSAGE_PERSIST_TIMEOUT_SECONDS: float = 10.0
    CHAT_JOIN_REQUIRES_PARTICIPANT: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="allow")
