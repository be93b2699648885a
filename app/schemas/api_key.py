# app/schemas/api_key.py
from pydantic import BaseModel
from typing import Optional, Set


class ApiKeyCreate(BaseModel):
    name: str
    deviceId: str
    macAddress: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[Set[str]] = None   # a bare string is rejected, never split into characters
    metadata: Optional[dict] = None
    type: Optional[str] = "device"
