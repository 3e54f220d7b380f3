import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .container import build_container
from .errors import AppError
from .repositories import UserRepository
from .responses import error_response
from .routes.auth import router as auth_router
from .routes.users import router as users_router
from .services.notifications import NotificationPublisher

logger = logging.getLogger("jobboard")


def _pkg_ver(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "not-installed"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _log_startup(settings: Settings) -> None:
    # Startup diagnostics (masked)
    logger.info(
        "[startup] env=%s store=%s fastapi=%s motor=%s redis=%s JWT_SECRET=%s JWT_REFRESH_SECRET=%s REDIS_URL=%s",
        settings.app_env,
        settings.user_store,
        _pkg_ver("fastapi"),
        _pkg_ver("motor"),
        _pkg_ver("redis"),
        "set" if settings.jwt_secret and settings.jwt_secret != Settings.jwt_secret else "default",
        "set" if settings.jwt_refresh_secret and settings.jwt_refresh_secret != Settings.jwt_refresh_secret else "default",
        "set" if settings.redis_url else "missing",
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
        return error_response(exc.message, exc.status_code, exc.data)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return error_response("Invalid request body", 400)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response("Internal server error", 500)


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[UserRepository] = None,
    publisher: Optional[NotificationPublisher] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _log_startup(settings)
        container = build_container(settings, repository=repository, publisher=publisher)
        await container.startup()
        app.state.container = container
        try:
            yield
        finally:
            await container.shutdown()

    app = FastAPI(title="Job Board API", lifespan=lifespan)

    # Basic CORS (credentials are needed for the auth cookies)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/")
    async def root():
        return {"status": "ok"}

    # include routers
    app.include_router(auth_router)
    app.include_router(users_router)
    return app


app = create_app()
