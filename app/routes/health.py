"""Health check endpoint."""
import logging
import sqlite3
from fastapi import APIRouter, Request

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health(request: Request):
    checks = {"app": "ok"}

    # Check upload directory is writable
    upload_root = request.app.state.settings.upload_root
    try:
        upload_root.mkdir(parents=True, exist_ok=True)
        test_file = upload_root / ".health_check"
        test_file.write_text("ok")
        test_file.unlink()
        checks["storage"] = "ok"
    except OSError as e:
        logger.warning("storage health check failed: %s", e)
        checks["storage"] = "error"

    try:
        request.app.state.database.ping()
        checks["database"] = "ok"
    except sqlite3.Error as e:
        logger.warning("database health check failed: %s", e)
        checks["database"] = "error"

    status = "ok" if all(v == "ok" for v in checks.values()) else "unhealthy"
    return {"status": status, "checks": checks}
