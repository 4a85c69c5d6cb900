"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_CLIENT: str = "postgres"  # postgres, sqlite
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "campus_marketplace"
    DATABASE_USERNAME: str = "postgres"
    DATABASE_PASSWORD: str = ""
    DATABASE_SSL: bool = False
    SQLITE_PATH: str = "./campus_marketplace.db"

    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL from components"""
        if self.DATABASE_CLIENT == "sqlite":
            return f"sqlite:///{self.SQLITE_PATH}"
        url = (
            f"postgresql://{self.DATABASE_USERNAME}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )
        if self.DATABASE_SSL:
            url += "?sslmode=require"
        return url

    # JWT
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days

    # API
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Campus Marketplace API"
    DEBUG: bool = True
    ALLOWED_ORIGINS: str = "*"
    FRONTEND_URL: str = "http://localhost:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from string"""
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Image hosting (external, listing photos only)
    IMAGE_HOST_BASE_URL: str = "https://images.campusmarket.dev"
    IMAGE_HOST_API_KEY: str = ""
    IMAGE_MAX_FILE_SIZE: int = 5242880  # 5MB
    IMAGE_ALLOWED_EXTENSIONS: str = "jpg,jpeg,png,gif,webp"

    @property
    def ALLOWED_IMAGE_EXTENSIONS(self) -> List[str]:
        """Parse allowed image extensions"""
        return [ext.strip().lower() for ext in self.IMAGE_ALLOWED_EXTENSIONS.split(",")]

    # Email Configuration
    SMTP_ENABLED: bool = False
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = "noreply@campusmarket.dev"
    SMTP_FROM_NAME: str = "Campus Marketplace"

    # Listing limits
    LISTING_DURATION_DAYS: int = 30
    LISTING_MAX_IMAGES: int = 5
    LISTING_MAX_PRICE: int = 10000
    LISTING_EXPIRY_WARNING_DAYS: int = 3
    VIEW_HISTORY_DAYS: int = 30

    # Messaging
    MESSAGE_MAX_LENGTH: int = 1000
    MESSAGE_RATE_LIMIT: str = "30/minute"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8001

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
