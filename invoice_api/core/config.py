# invoice_api/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./invoices.db"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    IMPORT_RATE_LIMIT: str = "10/minute"

    # Spreadsheet import
    IMPORT_INVOICE_SHEET: str = "Invoices"
    IMPORT_PRODUCT_SHEET: str = "Products"
    IMPORT_MAX_FILE_BYTES: int = 5 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
    )


settings = Settings()
