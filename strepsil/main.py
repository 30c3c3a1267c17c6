import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from strepsil.config import settings
from strepsil.database import async_session_maker, close_db, init_db
from strepsil.routers import ai_calls, chat, health, pages, providers, reports
from strepsil.routers import settings as settings_routes
from strepsil.security import get_cipher
from strepsil.services.encryption_validator import validate_encryption_key
from strepsil.services.provider_service import ProviderConfigService
from strepsil.services.settings_service import SettingsService

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, seed defaults and check the encryption key on startup."""
    await init_db()

    cipher = get_cipher()
    async with async_session_maker() as session:
        await ProviderConfigService(session, cipher).seed_defaults()
        await SettingsService(session, cipher).seed_defaults()
        encryption_status = await validate_encryption_key(session, cipher)

    app.state.encryption_status = encryption_status
    if encryption_status["status"] == "error":
        logger.critical(
            "ENCRYPTION_KEY mismatch: stored provider keys cannot be decrypted. "
            "Restore the original ENCRYPTION_KEY or re-enter the provider keys.",
            extra={"failed": encryption_status["failed"]},
        )
    elif encryption_status["status"] == "warning":
        logger.warning(encryption_status["message"], extra={"failed": encryption_status["failed"]})
    else:
        logger.info(encryption_status["message"])

    yield

    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="AI usage metering - cost, token and latency tracking for AI API calls",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(pages.router)
app.include_router(ai_calls.router)
app.include_router(reports.router)
app.include_router(chat.router)
app.include_router(providers.router)
app.include_router(settings_routes.router)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": _validation_message(exc)}, status_code=400)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Log unhandled errors and return a JSON 500.
    In localhost mode the error message is included.
    """
    logger.error(
        "Unhandled %s: %s\n%s",
        type(exc).__name__,
        exc,
        traceback.format_exc(),
        extra={"method": request.method, "path": request.url.path},
    )
    body = {"error": "Internal server error"}
    if settings.LOCALHOST_MODE:
        body["message"] = f"{type(exc).__name__}: {exc}"
    return JSONResponse(body, status_code=500)
