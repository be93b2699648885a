# app/routers/devices.py
"""
Scanner device endpoints.
Admin (JWT):  register, list, arm/disarm registration mode.
Device (key): poll registration mode, report status.
Open:         heartbeat.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import AdminPrincipal, managing_device, require_admin
from app.schemas.device import (
    DeviceOut, DeviceRegister, DeviceStatusIn, RegistrationModeIn, RegistrationModeOut,
)
from app.services import device_registry
from app.services.device_auth import AuthenticatedDevice, require_same_device

router = APIRouter()


def _device_out(device, online=None) -> dict:
    out = DeviceOut.model_validate(device)
    out.is_online = device_registry.compute_online_status(device) if online is None else online
    return out.model_dump(mode="json")


@router.post("/devices/register", status_code=201, summary="Register a scanner device")
def register_device(body: DeviceRegister, admin: AdminPrincipal = Depends(require_admin),
                    db: Session = Depends(get_db)):
    """The returned apiKey is shown once; only its digest is stored."""
    device, api_key = device_registry.register_device(db, body.macAddress, body.name, body.location)
    return {
        "success": True,
        "message": "Device registered successfully",
        "data": {"device": _device_out(device), "apiKey": api_key},
    }


@router.get("/devices", summary="List devices with online status")
def list_devices(admin: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    return {"success": True, "data": [_device_out(d, online) for d, online in device_registry.list_devices(db)]}


@router.post("/devices/{device_id}/heartbeat", summary="Device keep-alive")
def heartbeat(device_id: str, db: Session = Depends(get_db)):
    device = device_registry.heartbeat(db, device_id)
    return {"success": True, "data": {"deviceId": device.device_id, "lastSeen": device.last_seen.isoformat()}}


@router.get("/devices/registration-mode/{device_id}", response_model=RegistrationModeOut,
            summary="Device polls whether it should capture the next tag")
def get_registration_mode(device_id: str, identity: AuthenticatedDevice = Depends(managing_device),
                          db: Session = Depends(get_db)):
    require_same_device(identity, device_id)
    state = device_registry.get_registration_mode(db, device_id)
    return RegistrationModeOut(registrationMode=state.registration_mode, tagId=state.tag_id, scanMode=state.scan_mode)


@router.post("/devices/{device_id}/registration-mode", summary="Arm or disarm registration mode")
def set_registration_mode(device_id: str, body: RegistrationModeIn,
                          admin: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    """Without tagId the device accepts the next unknown tag it reads (scan mode)."""
    device = device_registry.set_registration_mode(db, device_id, enabled=body.enabled, pending_tag_id=body.tagId)
    return {
        "success": True,
        "message": f"Registration mode {'enabled' if body.enabled else 'disabled'}",
        "data": _device_out(device),
    }


@router.post("/devices/{device_id}/status", summary="Device status report")
def update_device_status(device_id: str, body: DeviceStatusIn,
                         identity: AuthenticatedDevice = Depends(managing_device),
                         db: Session = Depends(get_db)):
    require_same_device(identity, device_id)
    device = device_registry.update_status(
        db, device_id,
        registration_mode=body.registrationMode,
        location=body.location,
        reason=body.reason,
        status=body.status,
    )
    return {
        "success": True,
        "message": "Device status updated",
        "data": {"deviceId": device.device_id, "registrationMode": device.registration_mode},
    }
