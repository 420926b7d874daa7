from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel


@dataclass(frozen=True)
class AdminIdentity:
    """Administrator as seen by request handlers. Carries no secret material."""

    id: int
    email: str
    role: str
    is_active: bool
    last_login: datetime | None = None

    def summary(self) -> dict:
        return {"id": self.id, "email": self.email, "role": self.role}

    def profile(self) -> dict:
        return {
            **self.summary(),
            "isActive": self.is_active,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
        }


@dataclass(frozen=True)
class AdminRecord:
    """Stored administrator row, including the bcrypt password hash."""

    id: int
    email: str
    password_hash: str
    role: str
    is_active: bool
    last_login: datetime | None
    created_at: datetime

    def identity(self) -> AdminIdentity:
        return AdminIdentity(
            id=self.id,
            email=self.email,
            role=self.role,
            is_active=self.is_active,
            last_login=self.last_login,
        )


@dataclass(frozen=True)
class StoredFile:
    generated_name: str
    original_name: str
    mime_type: str
    size_bytes: int
    partition: str
    storage_path: Path
    public_url: str

    def to_response(self) -> dict:
        return {
            "ok": True,
            "publicUrl": self.public_url,
            "filename": self.generated_name,
            "originalName": self.original_name,
            "size": self.size_bytes,
            "mimetype": self.mime_type,
        }


class LoginPayload(BaseModel):
    email: str = ""
    password: str = ""


class ChangePasswordPayload(BaseModel):
    currentPassword: str = ""
    newPassword: str = ""


class DeleteFilePayload(BaseModel):
    url: str
