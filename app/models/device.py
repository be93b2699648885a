# app/models/device.py
"""
Scanner devices table (ESP32 readers deployed at terminal gates).
device_id is the MAC without separators, uppercase; mac_address keeps the
colon form for display. Registration mode is a short-lived state stamped by
registration_mode_at and expired lazily on read by device_registry.
"""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, JSON
from app.database import Base


class Device(Base):
    __tablename__ = "devices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    device_id = Column(String(32), unique=True, nullable=False, index=True)
    mac_address = Column(String(32), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    location = Column(String(200), nullable=False)
    api_key_hash = Column(String(64), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    registration_mode = Column(Boolean, default=False, nullable=False)
    registration_mode_at = Column(DateTime)
    pending_registration_tag_id = Column(String(100), default="")
    scan_mode = Column(Boolean, default=False, nullable=False)
    last_seen = Column(DateTime)
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<Device {self.device_id} name={self.name} reg_mode={self.registration_mode}>"
