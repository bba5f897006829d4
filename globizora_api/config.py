from dotenv import load_dotenv
from pydantic import BaseModel
from typing import List, Optional
import os


class Settings(BaseModel):
    """Process-wide configuration, built once at startup and handed to each component."""

    database_url: str = "sqlite:///data/app.db"
    jwt_secret: str = "devsecret"
    jwt_expire_minutes: int = 60
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    environment: str = "development"
    default_origin: str = "http://localhost:3000"
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///data/app.db"),
            jwt_secret=os.getenv("JWT_SECRET", "devsecret"),
            jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", "60")),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
            environment=os.getenv("APP_ENV", "development"),
            default_origin=os.getenv("DEFAULT_ORIGIN", "http://localhost:3000"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
        )

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)
