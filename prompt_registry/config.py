"""Configuration settings for the prompt registry service."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Prompt registry configuration (environment variables or .env)."""

    # Service Configuration
    SERVICE_NAME: str = "prompt-registry"
    SERVICE_VERSION: str = "1.0.0"
    CORS_ORIGINS: list = [
        "http://localhost:3000",
        "http://localhost:8080",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    NOISY_LOGGERS: list = ["botocore", "boto3", "aioboto3", "aiobotocore", "urllib3"]

    # Storage: "memory" (local development) or "dynamodb"
    STORAGE_BACKEND: str = "memory"
    PROMPT_NAMESPACE: str = "prompts"

    # DynamoDB
    DYNAMODB_ENDPOINT: Optional[str] = None  # None = AWS default endpoint
    DYNAMODB_REGION: str = "us-east-1"
    DYNAMODB_ACCESS_KEY: Optional[str] = None
    DYNAMODB_SECRET_KEY: Optional[str] = None
    PROMPTS_TABLE_NAME: str = "prompt_registry"
    DYNAMODB_CREATE_TABLE: bool = True  # create the table on startup if missing

    # Builtin catalog (None = packaged prompts directory)
    PROMPTS_DIR: Optional[str] = None

    # Composition resolution
    RESOLVE_TIMEOUT_SECONDS: Optional[float] = 10.0

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"


# Global settings instance
settings = Settings()
