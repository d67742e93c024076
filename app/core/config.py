import json
from typing import Annotated, List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # FastAPI Configuration
    PROJECT_NAME: str = "Identity Document Vault"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # JWT Configuration (tokens are issued elsewhere, only verified here)
    JWT_SECRET_KEY: str = Field(
        ...,
        description="Secret key for JWT tokens - must be cryptographically secure (min 32 chars)",
    )
    JWT_ALGORITHM: str = "HS256"
    ADMIN_ROLES: Annotated[List[str], NoDecode] = Field(
        default=["admin"],
        description="Token roles allowed to act on any owner's documents",
    )

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """Validate JWT secret key has minimum length for security."""
        if len(v) < 32:
            raise ValueError(
                "JWT_SECRET_KEY must be at least 32 characters long for security. "
                'Generate a secure key with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        return v

    # PostgreSQL Configuration
    DATABASE_URL: Optional[str] = None  # Full connection URL (for local dev)
    DATABASE_NAME: str = "identity_documents"
    DATABASE_USER: str = "postgres"
    DATABASE_PASSWORD: str = ""
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432

    # Connection Pool Settings
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False  # SQL query logging

    # Google Cloud Platform Configuration
    GCP_PROJECT_ID: Optional[str] = None
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None  # Path to service account file
    GCS_BUCKET_NAME: str = "identity-document-vault"
    GCS_KMS_KEY_NAME: Optional[str] = Field(
        default=None,
        description="Cloud KMS key for customer-managed encryption (Google-managed when unset)",
    )
    SIGNED_URL_SERVICE_ACCOUNT: Optional[str] = Field(
        default=None,
        description="Service account used for IAM signBlob when credentials cannot sign locally",
    )

    # Document Configuration
    MAX_FILE_SIZE: int = 2 * 1024 * 1024  # 2 MiB in bytes
    ALLOWED_MIME_TYPES: Annotated[List[str], NoDecode] = [
        "image/jpeg",
        "image/png",
        "application/pdf",
    ]
    SIGNED_URL_TTL_SECONDS: int = 3600

    @field_validator("ALLOWED_MIME_TYPES", "ADMIN_ROLES", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse list settings from comma-separated string or JSON array."""
        if isinstance(v, str):
            if v.strip().startswith("["):
                return json.loads(v)
            return [x.strip() for x in v.split(",") if x.strip()]
        return v

    # Timeouts for calls to the blob store and catalog (seconds)
    BLOB_PUT_TIMEOUT_SECONDS: float = 30.0
    SIGNED_URL_TIMEOUT_SECONDS: float = 5.0
    BLOB_DELETE_TIMEOUT_SECONDS: float = 10.0
    CATALOG_TIMEOUT_SECONDS: float = 10.0

    # CORS Settings
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    CORS_HEADERS: List[str] = [
        "Authorization",
        "Content-Type",
        "X-Requested-With",
        "Accept",
        "Origin",
        "User-Agent",
    ]

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # json or text

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        """Full async database URL, built from parts when DATABASE_URL is unset."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    @property
    def is_development(self) -> bool:
        """Check if the application is running in development mode."""
        return self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production mode."""
        return self.ENVIRONMENT.lower() in ["production", "prod"]


# Global settings instance
settings = Settings()
