"""
StratoSafe API.

    uvicorn stratosafe.main:app --reload --port 3001

Settings are loaded once here; a missing or weak JWT_SECRET stops the
process before it serves anything.
"""
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stratosafe.api.v1.auth import router as auth_router
from stratosafe.api.v1.mfa import router as mfa_router
from stratosafe.core.config import Settings, get_settings
from stratosafe.core.db import create_schema, make_engine, make_sessionmaker
from stratosafe.core.errors import AuthError
from stratosafe.core.logging import configure_logging
from stratosafe.core.ratelimit import RateLimiter
from stratosafe.core.security import PasswordHasher, SessionTokenIssuer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    engine = make_engine(settings)
    app.state.engine = engine
    app.state.sessionmaker = make_sessionmaker(engine)
    if settings.DB_AUTO_CREATE:
        await create_schema(engine)
        logger.info("Database schema created")
    logger.info(f"Starting {settings.APP_NAME} API ({settings.ENVIRONMENT})")

    yield

    await engine.dispose()
    logger.info(f"Shutting down {settings.APP_NAME} API")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title=f"{settings.APP_NAME} API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.hasher = PasswordHasher(settings.BCRYPT_ROUNDS)
    app.state.tokens = SessionTokenIssuer.from_settings(settings)
    app.state.rate_limiter = RateLimiter.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_tracking(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        start = time.time()
        response = await call_next(request)
        elapsed = (time.time() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"
        if not request.url.path.startswith("/health"):
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} "
                f"-> {response.status_code} ({elapsed:.1f}ms)"
            )
        return response

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code, content={"message": exc.message}, headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(p) for p in err['loc'][1:])}: {err['msg']}" for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Invalid request", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc!r}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error"},
        )

    app.include_router(auth_router)
    app.include_router(mfa_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
