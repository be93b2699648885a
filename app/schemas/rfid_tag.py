# app/schemas/rfid_tag.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class TagRegister(BaseModel):
    tagId: Optional[str] = None
    userId: Optional[int] = None
    metadata: Optional[dict] = None


class TagStatusUpdate(BaseModel):
    isActive: bool
    reason: Optional[str] = None


class TagOut(BaseModel):
    id: str
    tag_id: str
    user_id: Optional[int]
    is_active: bool
    last_scanned: Optional[datetime]
    last_device_id: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
