from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 20

    FRONTEND_BASE_URL: str

    # Redis settings
    REDIS_URL: str

    # Invitation settings
    INVITE_EXPIRE_DAYS: int = 30
    INVITE_DEFAULT_MAX_USES: int = 1
    INVITE_GENERATION_MAX_ATTEMPTS: int = 10

    # find-by-code throttling, per user
    CODE_LOOKUP_RATE_LIMIT: int = 10
    CODE_LOOKUP_WINDOW_SECONDS: int = 60

    PROJECT_NAME: str = "TripMate API"
    PROJECT_VERSION: str = "1.0.0"
    PROJECT_DESCRIPTION: str = "Trip invitations and join links"

    class Config:
        env_file = ".env"


settings = Settings()
