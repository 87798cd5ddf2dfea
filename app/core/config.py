from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    DATABASE_URL: str
    ENV: str = "dev"

    # Supabase Auth
    SUPABASE_URL: str
    SUPABASE_JWT_SECRET: str

    # Requisition store: "sql" or "memory"
    STORE_BACKEND: str = "sql"
    REFERENCE_PREFIX: str = "MEMO"

    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:4200",
        "http://localhost:5173",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
