from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session
from typing import Optional
import datetime as dt
import logging
import time

import psutil

from . import __version__
from .config import Settings
from .db import Database, get_db
from .deps import get_settings
from .errors import register_error_handlers
from .middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware, SecurityHeadersMiddleware
from .security import TokenIssuer
from . import account, auth, billing, store

logger = logging.getLogger(__name__)

COMPANY = {
    "name": "GLOBIZORA INC",
    "industry": "AI platforms, Internet infrastructure, SaaS, Media",
    "location": "Sheridan, Wyoming, USA",
    "email": "info@globizora.com",
    "established": "2025",
    "services": [
        "API platform development",
        "Data infrastructure",
        "SaaS applications",
        "Digital automation",
    ],
    "pricing": {
        "free": "$0/month",
        "pro": "$29/month",
        "enterprise": "$99/month",
    },
}


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class ContactIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    message: str = Field(min_length=1)

    @field_validator("name", "message", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


def _uptime(request: Request) -> float:
    return time.monotonic() - request.app.state.started_at


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(title="Globizora API", version=__version__,
                  description="Commercial API for Globizora Inc with auth, payments, and more.")
    app.state.settings = settings
    app.state.db = Database(settings.database_url)
    app.state.db.init()
    app.state.token_issuer = TokenIssuer(settings.jwt_secret, settings.jwt_expire_minutes)
    app.state.started_at = time.monotonic()

    # added first so it sits innermost, below headers, CORS and logging
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    @app.get("/")
    def root():
        return {
            "message": "Welcome to Globizora Inc API Service",
            "company": "Globizora Inc",
            "status": "running",
            "version": __version__,
            "docs": "/docs",
        }

    @app.get("/status")
    def status(request: Request, settings: Settings = Depends(get_settings)):
        return {
            "service": "Globizora API Service",
            "company": "GLOBIZORA INC",
            "status": "OK",
            "version": __version__,
            "environment": settings.environment,
            "uptime": f"{int(_uptime(request))}s",
            "timestamp": dt.datetime.now(dt.timezone.utc),
        }

    @app.get("/company")
    def company():
        return COMPANY

    @app.get("/metrics")
    def metrics(request: Request, db: Session = Depends(get_db)):
        mem = psutil.Process().memory_info()
        connected = request.app.state.db.is_connected()
        return {
            "memoryUsage": {"rss": mem.rss, "vms": mem.vms},
            "uptime": round(_uptime(request), 3),
            "users": store.count_users(db) if connected else None,
            "dbStatus": "connected" if connected else "disconnected",
            "timestamp": dt.datetime.now(dt.timezone.utc),
        }

    @app.post("/contact")
    def contact(payload: ContactIn):
        logger.info("Contact request received")
        return {
            "success": True,
            "message": "Your request has been received. Our team will contact you.",
            "data": {"name": payload.name, "email": payload.email, "message": payload.message},
        }

    app.include_router(auth.router)
    app.include_router(account.router)
    app.include_router(billing.router)
    return app


def serve():
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.info("Globizora API Service starting on %s:%s", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    serve()
