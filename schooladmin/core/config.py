from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    # Tokens are issued by the hosted identity provider; we only verify them.
    identity_jwt_secret: str = Field(..., alias="IDENTITY_JWT_SECRET")
    identity_jwt_algorithm: str = Field("HS256", alias="IDENTITY_JWT_ALGORITHM")
    identity_audience: Optional[str] = Field(None, alias="IDENTITY_AUDIENCE")
    identity_issuer: Optional[str] = Field(None, alias="IDENTITY_ISSUER")

    impersonation_session_hours: int = Field(4, alias="IMPERSONATION_SESSION_HOURS")

    audit_log_page_size: int = Field(20, alias="AUDIT_LOG_PAGE_SIZE")
    audit_log_max_page_size: int = Field(100, alias="AUDIT_LOG_MAX_PAGE_SIZE")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    super_admin_email: Optional[str] = Field(None, alias="SUPER_ADMIN_EMAIL")
    super_admin_external_id: Optional[str] = Field(None, alias="SUPER_ADMIN_EXTERNAL_ID")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
