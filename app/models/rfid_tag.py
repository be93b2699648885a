# app/models/rfid_tag.py
"""
RFID tags table.
A tag with no user_id is unassigned inventory: scans of it are accepted but
always inferred as event type "unknown".
"""

import uuid

from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base


class RfidTag(Base):
    __tablename__ = "rfid_tags"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tag_id = Column(String(100), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_scanned = Column(DateTime)
    last_device_id = Column(String(64))
    registered_by = Column(Integer, nullable=False)
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    user = relationship("User", lazy="joined")

    def __repr__(self):
        return f"<RfidTag {self.tag_id} user={self.user_id} active={self.is_active}>"
