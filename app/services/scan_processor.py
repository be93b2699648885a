# app/services/scan_processor.py
"""
Scan processing pipeline for POST /rfid/scan.

Every terminal branch except the missing-tagId check writes exactly one
ledger row before returning. Unknown, inactive and inactive-owner scans are
ordinary outcomes (ScanOutcome), not exceptions; only infrastructure errors
propagate.

Ordering on success: infer event type -> write ledger row -> update tag and
device pointers. Pointer updates are best-effort: a failure is logged with
a RECONCILE marker and the scan is still reported as success.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.rfid_scan import (
    RfidScan, EVENT_UNKNOWN, STATUS_FAILED, STATUS_SUCCESS, STATUS_UNAUTHORIZED,
    REASON_INACTIVE_TAG, REASON_INACTIVE_USER, REASON_TAG_NOT_REGISTERED,
)
from app.services import device_registry, tag_registry
from app.services.device_auth import AuthenticatedDevice
from app.services.entry_exit_service import infer_event_type
from app.services.scan_ledger import record_scan
from app.utils.logger import get_logger

logger = get_logger(__name__)

OUTCOME_SUCCESS = "success"
OUTCOME_INVALID = "invalid"
OUTCOME_NOT_REGISTERED = "not_registered"
OUTCOME_INACTIVE_TAG = "inactive_tag"
OUTCOME_INACTIVE_USER = "inactive_user"

_STATUS_CODES = {
    OUTCOME_SUCCESS: 200,
    OUTCOME_INVALID: 400,
    OUTCOME_NOT_REGISTERED: 404,
    OUTCOME_INACTIVE_TAG: 403,
    OUTCOME_INACTIVE_USER: 403,
}


@dataclass
class ScanRequest:
    tag_id: Optional[str]
    location: Optional[str] = None
    vehicle_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)


@dataclass
class ScanOutcome:
    kind: str
    message: str
    record: Optional[RfidScan] = None
    user: Optional[dict] = None
    registration_capture: bool = False

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.kind]

    @property
    def ok(self) -> bool:
        return self.kind == OUTCOME_SUCCESS

    def to_response(self) -> dict:
        body = {"success": self.ok, "message": self.message}
        if self.ok:
            body["data"] = {
                "scanId": self.record.id,
                "scanTime": self.record.scan_time.isoformat(),
                "eventType": self.record.event_type,
                "user": self.user,
            }
        elif self.registration_capture:
            body["data"] = {"registrationCapture": True, "tagId": self.record.tag_id}
        return body


def _best_effort(db: Session, what: str, fn, *args, **kwargs):
    try:
        fn(db, *args, **kwargs)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[SCAN] RECONCILE: ledger row written but {what} failed: {e}", exc_info=True)


def _capture_for_registration(db: Session, identity: AuthenticatedDevice, tag_id: str) -> bool:
    device = identity.device
    if device is None:
        return False
    try:
        return device_registry.accepts_registration(db, device, tag_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[SCAN] Could not read registration mode for {device.device_id}: {e}")
        return False


async def process_scan(db: Session, request: ScanRequest, identity: AuthenticatedDevice) -> ScanOutcome:
    tag_id = (request.tag_id or "").strip()
    if not tag_id:
        return ScanOutcome(OUTCOME_INVALID, "Missing required field: tagId is required")

    device_id = identity.device_id
    location = request.location or None
    vehicle_id = request.vehicle_id or None
    now = datetime.utcnow()
    logger.info(f"[SCAN] RFID scan attempt: {tag_id} from device {device_id}")

    if identity.device is not None:
        _best_effort(db, "device last_seen update", device_registry.touch_last_seen, identity.device, now)

    tag = tag_registry.lookup_tag(db, tag_id)

    if tag is None:
        captured = _capture_for_registration(db, identity, tag_id)
        meta = {"reason": REASON_TAG_NOT_REGISTERED}
        if captured:
            meta["registrationCapture"] = True
        record = record_scan(db, tag_id, device_id, STATUS_FAILED, EVENT_UNKNOWN,
                             location=location, vehicle_id=vehicle_id, metadata=meta, scan_time=now)
        if captured:
            _best_effort(db, "registration mode reset", device_registry.update_status,
                         device_id, registration_mode=False, reason="registration_success")
            logger.info(f"[SCAN] Unregistered tag {tag_id} captured for registration by {device_id}")
        else:
            logger.warning(f"[SCAN] Unregistered RFID: {tag_id}")
        return ScanOutcome(OUTCOME_NOT_REGISTERED, "RFID tag not registered", record,
                           registration_capture=captured)

    user = tag.user

    if not tag.is_active:
        logger.warning(f"[SCAN] Inactive RFID: {tag_id} for user {user.name if user else 'unknown'}")
        record = record_scan(db, tag_id, device_id, STATUS_UNAUTHORIZED, EVENT_UNKNOWN,
                             user_id=tag.user_id, location=location, vehicle_id=vehicle_id,
                             metadata={"reason": REASON_INACTIVE_TAG}, scan_time=now)
        return ScanOutcome(OUTCOME_INACTIVE_TAG, "RFID tag is inactive", record)

    if tag.user_id and user is not None and not user.is_active:
        logger.warning(f"[SCAN] RFID scan with inactive account: {tag_id} for user {user.name}")
        record = record_scan(db, tag_id, device_id, STATUS_UNAUTHORIZED, EVENT_UNKNOWN,
                             user_id=tag.user_id, location=location, vehicle_id=vehicle_id,
                             metadata={"reason": REASON_INACTIVE_USER}, scan_time=now)
        return ScanOutcome(OUTCOME_INACTIVE_USER, "User account is not active", record)

    event_type = infer_event_type(db, tag.user_id, location)
    user_info = {"id": user.id, "name": user.name, "role": user.role} if user else None

    record = record_scan(db, tag_id, device_id, STATUS_SUCCESS, event_type,
                         user_id=tag.user_id, location=location, vehicle_id=vehicle_id,
                         metadata=request.metadata, scan_time=now)

    _best_effort(db, f"tag {tag_id} last_scanned update", tag_registry.mark_scanned, tag, device_id, now)

    logger.info(f"[SCAN] {tag_id} -> {event_type} at {location or 'unknown location'} (device {device_id})")
    return ScanOutcome(OUTCOME_SUCCESS, "RFID scan successful", record, user=user_info)
