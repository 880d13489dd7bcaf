# app/core/config.py
from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str
    SQL_ECHO: bool = False

    # AWS
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_S3_BUCKET_NAME: str
    AWS_S3_REGION: str = "eu-central-1"
    AWS_S3_ENDPOINT_URL: Optional[str] = None  # minio / localstack

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 180

    LOG_LEVEL: str = "INFO"

    # Imports
    IMPORT_KEY_PREFIX: str = "import-files"
    IMPORT_SAMPLE_ROWS: int = 10
    IMPORT_MAX_FILE_SIZE_MB: int = 20

    class Config:
        env_file = ".env"

settings = Settings()
