# app/models/rfid_scan.py
"""
Scan ledger table: one row per scan attempt (success, failed, unauthorized).
tag_id is a plain string, not a foreign key: scans of unknown tags are still
recorded for diagnostics. Rows are append-only; the ORM refuses updates and
deletes.
"""

import uuid

from sqlalchemy import Column, String, Integer, DateTime, JSON, event
from app.database import Base

EVENT_ENTRY = "entry"
EVENT_EXIT = "exit"
EVENT_UNKNOWN = "unknown"

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_UNAUTHORIZED = "unauthorized"

REASON_TAG_NOT_REGISTERED = "Tag not registered"
REASON_INACTIVE_TAG = "Inactive tag"
REASON_INACTIVE_USER = "Inactive user account"


class RfidScan(Base):
    __tablename__ = "rfid_scans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tag_id = Column(String(100), nullable=False, index=True)
    device_id = Column(String(64), nullable=False, index=True)
    user_id = Column(Integer, index=True)
    event_type = Column(String(10), nullable=False, default=EVENT_UNKNOWN)  # entry | exit | unknown
    location = Column(String(200))
    vehicle_id = Column(String(100))
    scan_time = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False)      # success | failed | unauthorized
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime)

    @property
    def reason(self):
        return (self.metadata_ or {}).get("reason")

    def __repr__(self):
        return f"<RfidScan {self.id} tag={self.tag_id} status={self.status} event={self.event_type}>"


class LedgerImmutableError(RuntimeError):
    pass


@event.listens_for(RfidScan, "before_update")
def _refuse_update(mapper, connection, target):
    raise LedgerImmutableError(f"Scan record {target.id} is append-only")


@event.listens_for(RfidScan, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Scan record {target.id} is append-only")
