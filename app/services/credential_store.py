# app/services/credential_store.py
"""
Credential Store: API keys used by scanner hardware.

Keys are presented as "<prefix>_<secret>". Only sha256(secret) is stored,
so the composite is observable exactly once: in the create_api_key result.
"""

import hashlib
import secrets
from datetime import datetime
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.api_key import ApiKey, DEFAULT_PERMISSIONS, PERMISSION_SCAN
from app.utils.exceptions import ForbiddenError, InvalidCredentialError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


def hash_secret(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def split_api_key(header_value: str) -> Tuple[str, str]:
    """Split "<prefix>_<secret>". Raises ValidationError when either half is missing."""
    prefix, _, secret = header_value.partition("_")
    if not prefix or not secret:
        raise ValidationError("malformed credential")
    return prefix, secret


def create_api_key(
    db: Session,
    name: str,
    device_id: str,
    created_by: int,
    permissions: Optional[Iterable[str]] = None,
    mac_address: Optional[str] = None,
    description: str = "",
    metadata: Optional[dict] = None,
    key_type: str = "device",
) -> Tuple[ApiKey, str]:
    """
    Generate and persist a new credential.
    Returns (record, composite_key); the composite is never stored.
    """
    if not name or not device_id:
        raise ValidationError("Name and deviceId are required")

    secret = secrets.token_hex(32)
    prefix = secrets.token_hex(3)

    meta = dict(metadata or {})
    if mac_address:
        meta["macAddress"] = mac_address

    now = datetime.utcnow()
    api_key = ApiKey(
        name=name,
        device_id=device_id,
        description=description or "",
        key_hash=hash_secret(secret),
        prefix=prefix,
        permissions=permissions if permissions is not None else DEFAULT_PERMISSIONS,
        key_type=key_type or "device",
        is_active=True,
        created_by=created_by,
        metadata_=meta,
        created_at=now,
        updated_at=now,
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)
    logger.info(f"[KEYS] Created API key prefix={prefix} for device {device_id} by user {created_by}")
    return api_key, f"{prefix}_{secret}"


def find_api_key(db: Session, prefix: str, secret: str) -> Optional[ApiKey]:
    """Lookup by (prefix, digest) regardless of active flag."""
    return db.query(ApiKey).filter(
        ApiKey.prefix == prefix,
        ApiKey.key_hash == hash_secret(secret),
    ).first()


def resolve_api_key(db: Session, prefix: str, secret: str) -> ApiKey:
    """
    Resolve a presented credential.
    Absent -> InvalidCredentialError (401); present but inactive -> ForbiddenError (403).
    Legacy permission shapes are rewritten in canonical form on the way out.
    """
    api_key = find_api_key(db, prefix, secret)
    if api_key is None:
        raise InvalidCredentialError("Invalid API key")
    if not api_key.is_active:
        logger.warning(f"[AUTH] Inactive API key presented: prefix={prefix}")
        raise ForbiddenError("Invalid or inactive API key")

    if not api_key.permissions_normalized:
        logger.warning(
            f"[KEYS] Repairing stored permissions for prefix={prefix}: "
            f"{api_key._permissions!r} -> {sorted(api_key.permissions)}"
        )
        api_key.permissions = api_key.permissions
        db.commit()
    return api_key


def has_permission(db: Session, api_key: ApiKey, token: str) -> bool:
    """
    Membership check on the normalised permission set.
    Device keys always carry the baseline scan permission; a device key found
    without it is granted and the corrected set persisted.
    """
    current = api_key.permissions
    if token in current:
        return True
    if token == PERMISSION_SCAN and api_key.key_type == "device":
        api_key.permissions = current | {PERMISSION_SCAN}
        api_key.updated_at = datetime.utcnow()
        db.commit()
        logger.warning(f"[KEYS] Granted baseline scan permission to device key prefix={api_key.prefix}")
        return True
    return False


def touch_usage(db: Session, api_key: ApiKey) -> None:
    """Stamp last_used_at. Failure here must never fail the caller's request."""
    try:
        api_key.last_used_at = datetime.utcnow()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[KEYS] Could not update last_used_at for prefix={api_key.prefix}: {e}")


def require_permission(db: Session, api_key: ApiKey, token: str) -> None:
    if not has_permission(db, api_key, token):
        logger.warning(f"[AUTH] API key prefix={api_key.prefix} lacks '{token}' permission")
        raise ForbiddenError(f"API key does not have {token} permission")
