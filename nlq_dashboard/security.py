from typing import Dict
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import Settings

logger = logging.getLogger(__name__)

# Per-client limiter; the query endpoints apply Settings.rate_limit
limiter = Limiter(key_func=get_remote_address)

BASE_SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Cache-Control": "no-store",
}


def security_headers(settings: Settings) -> Dict[str, str]:
    """Headers added to every response. HSTS only outside development."""
    headers = dict(BASE_SECURITY_HEADERS)
    if not settings.is_development_mode():
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers


def setup_security_middleware(app: FastAPI, settings: Settings) -> None:
    # The dashboard front end calls the API from its own origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    logger.info(f"CORS enabled for origins: {', '.join(settings.allowed_origins)}")

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    headers = security_headers(settings)

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(headers)
        return response
