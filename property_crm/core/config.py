from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Auth (tokens are issued by this service)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60

    # Shared secret sent by the cron runner as "Authorization: Bearer <CRON_SECRET>"
    CRON_SECRET: str

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_SSL: bool = False
    SMTP_FROM: str = "noreply@property-crm.com"
    SUPPORT_EMAIL: str = "support@property-crm.com"

    # Frontend used for links inside emails
    APP_URL: str = "http://localhost:3000"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Document storage (any S3-compatible bucket; set S3_ENDPOINT_URL for R2 or MinIO)
    S3_BUCKET: str = "property-crm-documents"
    S3_ENDPOINT_URL: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None
    S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_REGION: str = "auto"
    PRESIGNED_URL_EXPIRE_MINUTES: int = 15
    MAX_UPLOAD_MB: int = 20

    # Unicode TTF for invoice PDFs; Latin-1 Helvetica when unset
    INVOICE_FONT_PATH: Optional[str] = None

    DEFAULT_CURRENCY: str = "ZAR"
    CALENDAR_FETCH_TIMEOUT: int = 15

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
