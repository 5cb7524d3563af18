from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Project
    PROJECT_NAME: str = "clubfee"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Bowling club settlement engine and OCR reconciliation"

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "clubfee"

    # Settlement
    SETTLEMENT_ROUNDING_UNIT: int = 1000

    # OCR engines
    PRIMARY_OCR_ENABLED: bool = True
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_LINE_CONFIDENCE: float = 0.95
    OCR_TIMEOUT_SECONDS: float = 30.0
    TESSERACT_CMD: Optional[str] = None
    TESSERACT_LANG: str = "kor+eng"

    # OCR parsing
    RECEIPT_REVIEW_THRESHOLD: float = 0.80
    SCORE_SHEET_REVIEW_THRESHOLD: float = 0.80

    # Image preprocessing
    OCR_MAX_IMAGE_DIMENSION: int = 1920
    SCORE_SHEET_ROTATION_RATIO: float = 1.3

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
