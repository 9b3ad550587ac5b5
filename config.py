"""
Runtime configuration for the Wrist Titans API.

Settings are read once at process start and handed to the database gateway,
the token service and the password hasher explicitly.
"""
import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, EmailStr, Field

logger = logging.getLogger(__name__)

DEV_SECRET = "dev-secret-key-change"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str = "mongodb://localhost:27017"
    database_name: str = "wrist_titans"
    jwt_secret: str = Field(DEV_SECRET, repr=False)
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    bcrypt_rounds: int = Field(12, ge=4, le=31)
    port: int = 5000
    upload_dir: str = "uploads"
    cors_origins: List[str] = ["*"]
    admin_email: Optional[EmailStr] = None
    admin_password: Optional[str] = Field(None, repr=False)
    admin_name: str = "Administrator"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        env = os.environ
        values = {
            "database_url": env.get("DATABASE_URL") or env.get("MONGODB_URI"),
            "database_name": env.get("DATABASE_NAME"),
            "jwt_secret": env.get("JWT_SECRET"),
            "jwt_algorithm": env.get("JWT_ALGORITHM"),
            "access_token_expire_minutes": env.get("ACCESS_TOKEN_EXPIRE_MINUTES"),
            "bcrypt_rounds": env.get("BCRYPT_ROUNDS"),
            "port": env.get("PORT"),
            "upload_dir": env.get("UPLOAD_DIR"),
            "admin_email": env.get("ADMIN_EMAIL"),
            "admin_password": env.get("ADMIN_PASSWORD"),
            "admin_name": env.get("ADMIN_NAME"),
            "log_level": env.get("LOG_LEVEL"),
        }
        origins = env.get("CORS_ORIGINS")
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        settings = cls(**{k: v for k, v in values.items() if v is not None})
        if settings.jwt_secret == DEV_SECRET:
            logger.warning("JWT_SECRET is not set; using the development secret")
        return settings
