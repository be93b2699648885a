# app/schemas/scan.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ScanIn(BaseModel):
    # tagId is validated by the scan processor so a missing tag is a 400, not a 422
    tagId: Optional[str] = None
    location: Optional[str] = None
    vehicleId: Optional[str] = None
    metadata: Optional[dict] = None


class ScanRecordOut(BaseModel):
    id: str
    tag_id: str
    device_id: str
    user_id: Optional[int]
    event_type: str
    location: Optional[str]
    vehicle_id: Optional[str]
    scan_time: datetime
    status: str

    class Config:
        from_attributes = True


class UnregisteredScanOut(BaseModel):
    id: str
    tagId: str
    location: Optional[str]
    deviceId: str
    scanTime: datetime
