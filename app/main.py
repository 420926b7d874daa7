import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.auth import TokenAuthenticator
from app.config import Settings, load_settings
from app.database import Database
from app.routes import auth, files, health, upload
from app.storage import UploadError, UploadIngestor

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Build the API. Run with ``uvicorn app.main:create_app --factory``."""
    if settings is None:
        settings = load_settings()
    if database is None:
        database = Database(settings.database_path)
    database.initialize()

    ingestor = UploadIngestor(settings)
    ingestor.ensure_root()

    app = FastAPI(title="election-portal-admin", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.database = database
    app.state.authenticator = TokenAuthenticator(settings, database)
    app.state.ingestor = ingestor

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def security_headers_middleware(request, call_next):
        response = await call_next(request)
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError):
        return JSONResponse({"detail": exc.message}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        body = {"detail": "Internal server error"}
        if settings.debug:
            body["error"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(body, status_code=500)

    app.include_router(health.router)
    app.include_router(files.router)
    app.include_router(auth.router)
    app.include_router(upload.router)
    return app
