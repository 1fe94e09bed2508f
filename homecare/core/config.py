from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Teamwork Homecare Portal"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "production"

    # Practice backend
    API_URL: str = "http://localhost:3007/api"
    API_TIMEOUT: float = 10.0  # seconds
    MAX_PAGE_LIMIT: int = 100

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Session state (in-progress attempts, open record forms)
    REDIS_URL: Optional[str] = None
    SESSION_TTL: int = 60 * 60 * 4  # 4 hours
    SUBMIT_LOCK_TTL: int = 60  # seconds a submit may hold its session
    CACHE_TTL: int = 300

    # Exam time limit is displayed only unless this is switched on
    EXAM_AUTO_SUBMIT_ON_TIMEOUT: bool = False

    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    class Config:
        env_file = ".env"

settings = Settings()
