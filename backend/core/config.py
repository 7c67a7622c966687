"""
Application configuration
12-factor app principles: all config from environment variables
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # App configuration
    APP_NAME: str = "TheVideoPool"
    APP_URL: str = "http://localhost:3000"
    API_URL: str = "http://localhost:8000"
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./thevideopool.db"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # JWT Authentication
    JWT_SECRET: str = "your-super-secret-jwt-key-change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 10080  # 7 days
    AUTH_COOKIE_NAME: str = "authToken"

    # Storage backend: "local", "minio" or "s3"
    STORAGE_BACKEND: str = "local"
    LOCAL_MEDIA_ROOT: str = "./media"

    # MinIO / S3
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ROOT_USER: str = "minioadmin"
    MINIO_ROOT_PASSWORD: str = "minioadmin"
    MINIO_BUCKET_VIDEOS: str = "videos"
    MINIO_BUCKET_THUMBNAILS: str = "thumbnails"
    MINIO_BUCKET_UPLOADS: str = "uploads"
    MINIO_USE_SSL: bool = False

    # AWS S3 (Production)
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_BUCKET_NAME: str = ""

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    CELERY_TASK_ALWAYS_EAGER: bool = False

    # AI Services
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # Email (SMTP). Emails are logged instead of sent when SMTP_HOST is empty.
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "info@thevideopool.com"
    EMAIL_FROM_NAME: str = "TheVideoPool"
    EMAIL_DEFAULT_SEND_RATE: int = 100  # emails per hour
    UNSUBSCRIBE_BASE_URL: str = "https://thevideopool.com/unsubscribe"

    # Downloads
    BULK_DOWNLOAD_DIR: str = "./temp/bulk-downloads"
    BULK_DOWNLOAD_MAX_AGE_HOURS: int = 24
    BULK_DOWNLOAD_MAX_VIDEOS: int = 50
    DOWNLOAD_TOKEN_TTL_SECONDS: int = 7200  # 2 hours
    STREAM_TOKEN_TTL_SECONDS: int = 3600  # 1 hour

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
