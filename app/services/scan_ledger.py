# app/services/scan_ledger.py
"""
Scan Ledger: append-only history of every scan attempt.
Writers call record_scan(); the remaining helpers are the reads the
entry/exit inference and the tag registration flow need.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.rfid_scan import RfidScan, STATUS_FAILED, REASON_TAG_NOT_REGISTERED
from app.models.rfid_tag import RfidTag
from app.utils.logger import get_logger

logger = get_logger(__name__)


def record_scan(
    db: Session,
    tag_id: str,
    device_id: str,
    status: str,
    event_type: str,
    user_id: Optional[int] = None,
    location: Optional[str] = None,
    vehicle_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    scan_time: Optional[datetime] = None,
) -> RfidScan:
    """Persist one scan attempt and commit immediately."""
    now = datetime.utcnow()
    scan = RfidScan(
        tag_id=tag_id,
        device_id=device_id,
        user_id=user_id,
        event_type=event_type,
        location=location or None,
        vehicle_id=vehicle_id or None,
        scan_time=scan_time or now,
        status=status,
        metadata_=dict(metadata or {}),
        created_at=now,
    )
    db.add(scan)
    db.commit()
    db.refresh(scan)
    logger.debug(f"[LEDGER] {scan!r}")
    return scan


def latest_for_user(db: Session, user_id: int) -> Optional[RfidScan]:
    """Most recent ledger row for a user, any status."""
    return (
        db.query(RfidScan)
        .filter(RfidScan.user_id == user_id)
        .order_by(RfidScan.scan_time.desc(), RfidScan.created_at.desc())
        .first()
    )


def count_for_tag(db: Session, tag_id: str) -> int:
    return db.query(RfidScan).filter(RfidScan.tag_id == tag_id).count()


def check_recent_tag_scan(db: Session, tag_id: str, now: Optional[datetime] = None) -> Optional[RfidScan]:
    """Latest scan of a tag within RECENT_TAG_SCAN_SECONDS (two-step registration helper)."""
    now = now or datetime.utcnow()
    since = now - timedelta(seconds=settings.RECENT_TAG_SCAN_SECONDS)
    return (
        db.query(RfidScan)
        .filter(RfidScan.tag_id == tag_id, RfidScan.scan_time >= since)
        .order_by(RfidScan.scan_time.desc())
        .first()
    )


def recent_unregistered_scans(db: Session, now: Optional[datetime] = None) -> List[RfidScan]:
    """
    Failed "Tag not registered" scans inside the unregistered-scan window,
    minus tags registered since the scan happened.
    """
    now = now or datetime.utcnow()
    since = now - timedelta(seconds=settings.UNREGISTERED_SCAN_WINDOW_SECONDS)
    scans = (
        db.query(RfidScan)
        .filter(RfidScan.scan_time >= since, RfidScan.status == STATUS_FAILED)
        .order_by(RfidScan.scan_time.desc())
        .limit(settings.UNREGISTERED_SCAN_LIMIT)
        .all()
    )
    scans = [s for s in scans if s.reason == REASON_TAG_NOT_REGISTERED]
    if not scans:
        return []

    registered = {
        row.tag_id
        for row in db.query(RfidTag.tag_id).filter(RfidTag.tag_id.in_(sorted({s.tag_id for s in scans}))).all()
    }
    return [s for s in scans if s.tag_id not in registered]
