import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import EXTENSION_ORIGIN_REGEX, Settings, load_settings
from .context import AppContext
from .errors import GENERIC_ERROR_MESSAGE, CookieRelayError
from .logging_setup import configure_logging, request_id_var
from .middleware import SECURITY_HEADERS, BodySizeLimitMiddleware
from .rate_limit import create_limiter, rate_limit_exceeded_handler
from .routers import api_router

logger = logging.getLogger(__name__)


def _envelope(message: str, error: Optional[str] = None, data=None) -> dict:
    return {"success": False, "message": message, "data": data, "error": error}


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """Build the FastAPI app.

    ``context`` is created from ``settings`` at startup unless one is passed in.
    """
    if settings is None:
        settings = context.settings if context is not None else load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        if getattr(app.state, 'context', None) is None:
            app.state.context = AppContext.from_settings(settings)
        ctx: AppContext = app.state.context
        logger.info(f"Cookie relay {__version__} started (env={settings.app_env}, storage={ctx.backend})")
        if not settings.jwt_secret:
            logger.warning("SUPABASE_JWT_SECRET is not properly configured. Authenticated endpoints will answer 503.")
        try:
            yield
        finally:
            ctx.close()

    app = FastAPI(title='Cookie Relay', version=__version__, lifespan=lifespan)
    app.state.context = context
    limiter = create_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # ─── CORS ────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_origin_regex=EXTENSION_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(SlowAPIMiddleware)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex[:12]
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers['X-Request-ID'] = request_id
        return response

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
    #------------------------------------------------

    @app.exception_handler(CookieRelayError)
    async def relay_error_handler(request: Request, exc: CookieRelayError):
        error = exc.detail
        if exc.status_code >= 500 and settings.is_production:
            error = GENERIC_ERROR_MESSAGE
        return JSONResponse(status_code=exc.status_code, content=_envelope(exc.message, error))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = '; '.join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content=_envelope('Invalid request', problems or None))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = 'Endpoint not found' if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=_envelope(message), headers=getattr(exc, 'headers', None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        error = GENERIC_ERROR_MESSAGE if settings.is_production else str(exc)
        return JSONResponse(status_code=500, content=_envelope('Internal server error', error))

    @app.get("/health")
    @limiter.exempt
    def health_check(request: Request):
        """Liveness plus storage/auth wiring, for deployment monitoring."""
        ctx: Optional[AppContext] = request.app.state.context
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "environment": settings.app_env,
            "storage": ctx.backend if ctx else None,
            "auth_configured": bool(settings.jwt_secret),
            "index_failures": ctx.cookie_store.index_failures if ctx else 0,
        }

    app.include_router(api_router)
    return app


app = create_app()

# Optional standalone runner
if __name__ == '__main__':
    uvicorn.run('cookie_relay.api:app', host='127.0.0.1', port=8000, log_level='info')
