# app/schemas/device.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class DeviceRegister(BaseModel):
    macAddress: str
    name: str
    location: str


class RegistrationModeIn(BaseModel):
    tagId: Optional[str] = None
    enabled: bool = True


class DeviceStatusIn(BaseModel):
    registrationMode: Optional[bool] = None
    location: Optional[str] = None
    reason: Optional[str] = None
    status: Optional[dict] = None


class DeviceOut(BaseModel):
    id: str
    device_id: str
    mac_address: str
    name: str
    location: str
    is_active: bool
    registration_mode: bool
    pending_registration_tag_id: Optional[str]
    scan_mode: bool
    last_seen: Optional[datetime]
    is_online: Optional[bool] = None

    class Config:
        from_attributes = True


class RegistrationModeOut(BaseModel):
    registrationMode: bool
    tagId: str
    scanMode: bool
