# app/dependencies.py
"""
FastAPI dependencies shared by the routers:
admin JWT verification, device API-key authentication, the scan rate limiter.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.api_key import PERMISSION_MANAGE, PERMISSION_SCAN
from app.services.device_auth import AuthenticatedDevice, authenticate_device
from app.services.rate_limiter import ScanRateLimiter
from app.utils.exceptions import ForbiddenError, UnauthorizedError
from app.utils.logger import get_logger

logger = get_logger(__name__)

ADMIN_ROLES = {"admin", "superadmin"}

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AdminPrincipal:
    id: int
    email: Optional[str]
    role: str


def require_admin(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> AdminPrincipal:
    """Verify an admin session token. Tokens are issued by the auth service, not here."""
    if credentials is None:
        raise UnauthorizedError("Authentication token required")
    try:
        payload = jwt.decode(credentials.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise ForbiddenError("Invalid or expired token")

    role = payload.get("role")
    if payload.get("id") is None:
        raise ForbiddenError("Invalid or expired token")
    if role not in ADMIN_ROLES:
        logger.warning(f"[AUTH] Admin endpoint refused for role={role!r}")
        raise ForbiddenError("Access denied: Insufficient permissions")
    return AdminPrincipal(id=int(payload.get("id")), email=payload.get("email"), role=role)


def scan_device(
    x_api_key: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> AuthenticatedDevice:
    return authenticate_device(db, x_api_key, PERMISSION_SCAN)


def managing_device(
    x_api_key: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> AuthenticatedDevice:
    return authenticate_device(db, x_api_key, PERMISSION_MANAGE)


def get_rate_limiter(request: Request) -> ScanRateLimiter:
    return request.app.state.scan_rate_limiter
