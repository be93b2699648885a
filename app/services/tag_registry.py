# app/services/tag_registry.py
"""
Tag Registry: RFID tag lookup and management helpers.
Used by scan_processor and the rfid router.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.rfid_tag import RfidTag
from app.models.user import User
from app.utils.exceptions import ConflictError, NotRegisteredError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


def lookup_tag(db: Session, tag_id: str) -> Optional[RfidTag]:
    """Find a tag by its RFID identifier. Returns None if not found."""
    return db.query(RfidTag).filter(RfidTag.tag_id == tag_id).first()


def find_by_tag(db: Session, tag_id: str) -> RfidTag:
    tag = lookup_tag(db, tag_id)
    if not tag:
        raise NotRegisteredError("RFID tag not found")
    return tag


def is_registered(db: Session, tag_id: str) -> bool:
    return lookup_tag(db, tag_id) is not None


def register_tag(
    db: Session,
    tag_id: str,
    registered_by: int,
    user_id: Optional[int] = None,
    metadata: Optional[dict] = None,
) -> RfidTag:
    if not tag_id:
        raise ValidationError("Missing required field: tagId is required")

    user = None
    if user_id is not None:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotRegisteredError("User not found")

    if is_registered(db, tag_id):
        raise ConflictError("RFID tag is already registered")

    now = datetime.utcnow()
    tag = RfidTag(
        tag_id=tag_id,
        user_id=user_id,
        is_active=True,
        registered_by=registered_by,
        metadata_=dict(metadata or {}),
        created_at=now,
        updated_at=now,
    )
    db.add(tag)
    db.commit()
    db.refresh(tag)
    logger.info(
        f"[TAGS] RFID tag {tag_id} registered "
        f"{f'for user {user.name}' if user else 'without user'} by admin {registered_by}"
    )
    return tag


def set_tag_active(
    db: Session,
    tag_id: str,
    is_active: bool,
    reason: Optional[str] = None,
    changed_by: Optional[int] = None,
) -> RfidTag:
    """Activate/deactivate a tag. A reason is kept in the metadata audit trail."""
    tag = find_by_tag(db, tag_id)
    now = datetime.utcnow()
    tag.is_active = is_active

    if reason:
        meta = dict(tag.metadata_ or {})
        entry = {
            "isActive": is_active,
            "reason": reason,
            "changedBy": changed_by,
            "changedAt": now.isoformat(),
        }
        meta["statusChangeReason"] = reason
        meta["statusChangedBy"] = changed_by
        meta["statusChangedAt"] = entry["changedAt"]
        meta["statusHistory"] = list(meta.get("statusHistory", [])) + [entry]
        tag.metadata_ = meta

    tag.updated_at = now
    db.commit()
    action = "activated" if is_active else "deactivated"
    logger.info(f"[TAGS] RFID tag {tag_id} {action} by admin {changed_by}." + (f" Reason: {reason}" if reason else ""))
    return tag


def mark_scanned(db: Session, tag: RfidTag, device_id: str, when: Optional[datetime] = None):
    tag.last_scanned = when or datetime.utcnow()
    tag.last_device_id = device_id
    db.commit()
