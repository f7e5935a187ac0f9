from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://ledger_admin:ledger_secret@db:5432/ledger_db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    AUTO_CREATE_SCHEMA: bool = True
    JWT_SECRET: str = "ledger-jwt-secret-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    CORS_ORIGINS: list[str] = ["http://localhost:3001", "http://localhost:5173"]
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api/v1"

    class Config:
        env_file = ".env"


settings = Settings()
