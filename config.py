import os
import tempfile
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Configuration from environment variables"""

    def __init__(self):
        self.jwt_secret = self._get_required_env("JWT_SECRET")
        self.jwt_algorithm = "HS256"
        self.token_expire_days = int(os.getenv("TOKEN_EXPIRE_DAYS", "365"))

        self.mongo_uri = os.getenv("MONGO_URI", "mongodb://localhost:27017")
        self.database_name = os.getenv("DATABASE_NAME", "vidshare")

        self.cloud_name = self._get_optional_env("CLOUD_NAME")
        self.cloud_api_key = self._get_optional_env("CLOUD_API_KEY")
        self.cloud_api_secret = self._get_optional_env("CLOUD_API_SECRET")

        self.upload_tmp_dir = os.getenv("UPLOAD_TMP_DIR", tempfile.gettempdir())
        self.cors_origins: List[str] = [
            o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
        ]
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.port = int(os.getenv("PORT", "8000"))

    def _get_required_env(self, key: str) -> str:
        """Get required environment variable"""
        value = os.getenv(key)
        if not value:
            raise ValueError(f"Required environment variable {key} is not set")
        return value

    def _get_optional_env(self, key: str) -> Optional[str]:
        """Get optional environment variable"""
        return os.getenv(key)

    def media_configured(self) -> bool:
        return bool(self.cloud_name and self.cloud_api_key and self.cloud_api_secret)


settings = Settings()
