"""
Core settings and environment variables for the Civic Console.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Civic Console"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Console frontends allowed to access this API
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"

    # Firebase (Auth, Firestore, Storage)
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    FIREBASE_STORAGE_BUCKET: Optional[str] = None

    # What happens when a signed-in user has no admin/supervisor record:
    # - "null_role": deny access, leave the Firebase session alone
    # - "sign_out": deny access and revoke the user's refresh tokens
    ROLE_FAILURE_POLICY: str = "null_role"

    # Report resolution gated by the image classifier
    ML_GATED_RESOLUTION: bool = True
    ML_API_BASE_URL: str = "https://ripple-model-dfgk.onrender.com"
    ML_TIMEOUT_SECONDS: float = 30.0

    # Evidence photos
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    EVIDENCE_PREFIX: str = "resolved"

    # Console client
    CONSOLE_API_BASE_URL: str = "http://localhost:8000"
    CONSOLE_TIMEOUT_SECONDS: float = 15.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def sign_out_on_role_failure(self) -> bool:
        return self.ROLE_FAILURE_POLICY.strip().lower() == "sign_out"


# Global settings instance
settings = Settings()
