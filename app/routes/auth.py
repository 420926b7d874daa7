import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from app.auth import TokenAuthenticator, require_admin
from app.database import MIN_PASSWORD_LEN, Database, verify_password
from app.models import AdminIdentity, ChangePasswordPayload, LoginPayload

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _database(request: Request) -> Database:
    return request.app.state.database


@router.post("/login")
def api_login(payload: LoginPayload, request: Request):
    email = payload.email.strip()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Please provide email and password")

    db = _database(request)
    record = db.get_admin_by_email(email)
    if record is None:
        logger.warning("login failed: unknown email")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not record.is_active:
        logger.warning("login refused: admin %s is deactivated", record.id)
        raise HTTPException(status_code=401, detail="Account is deactivated")
    if not verify_password(payload.password, record.password_hash):
        logger.warning("login failed: bad password for admin %s", record.id)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    db.record_login(record.id)
    authenticator: TokenAuthenticator = request.app.state.authenticator
    token = authenticator.issue_token(record.id)
    logger.info("admin %s logged in", record.id)
    return {"ok": True, "token": token, "admin": record.identity().summary()}


@router.get("/me")
def api_me(admin: AdminIdentity = Depends(require_admin)):
    return {"ok": True, "admin": admin.profile()}


@router.put("/password")
def api_change_password(
    payload: ChangePasswordPayload,
    request: Request,
    admin: AdminIdentity = Depends(require_admin),
):
    if not payload.currentPassword or not payload.newPassword:
        raise HTTPException(status_code=400, detail="Please provide current and new password")
    if len(payload.newPassword) < MIN_PASSWORD_LEN:
        raise HTTPException(
            status_code=400,
            detail=f"New password must be at least {MIN_PASSWORD_LEN} characters",
        )

    db = _database(request)
    record = db.get_admin(admin.id)
    if record is None or not verify_password(payload.currentPassword, record.password_hash):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    db.update_password(admin.id, payload.newPassword)
    logger.info("admin %s changed password", admin.id)
    return {"ok": True}
