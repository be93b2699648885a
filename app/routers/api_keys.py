# app/routers/api_keys.py
"""Credential creation for scanner hardware (admin only)."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import AdminPrincipal, require_admin
from app.schemas.api_key import ApiKeyCreate
from app.services.credential_store import create_api_key

router = APIRouter()


@router.post("/api-keys", status_code=201, summary="Create a device API key")
def create_key(body: ApiKeyCreate, admin: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    """The full key is returned exactly once."""
    api_key, full_key = create_api_key(
        db,
        name=body.name,
        device_id=body.deviceId,
        created_by=admin.id,
        permissions=body.permissions,
        mac_address=body.macAddress,
        description=body.description or "",
        metadata=body.metadata,
        key_type=body.type,
    )
    return {
        "success": True,
        "message": "API key created successfully",
        "data": {
            "id": api_key.id,
            "name": api_key.name,
            "deviceId": api_key.device_id,
            "prefix": api_key.prefix,
            "apiKey": full_key,
            "permissions": sorted(api_key.permissions),
            "macAddress": api_key.mac_address,
            "type": api_key.key_type,
        },
    }
