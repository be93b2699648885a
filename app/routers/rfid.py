# app/routers/rfid.py
"""
RFID endpoints.
POST /rfid/scan: device-authenticated scan ingestion (X-API-Key).
Everything else: admin tag management and the two-step registration helpers.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import AdminPrincipal, get_rate_limiter, require_admin, scan_device
from app.schemas.rfid_tag import TagOut, TagRegister, TagStatusUpdate
from app.schemas.scan import ScanIn, ScanRecordOut, UnregisteredScanOut
from app.services import scan_ledger, tag_registry
from app.services.device_auth import AuthenticatedDevice
from app.services.rate_limiter import ScanRateLimiter
from app.services.scan_processor import ScanRequest, process_scan
from app.utils.exceptions import RateLimitedError
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/rfid/scan", summary="Device scan submission")
async def scan_rfid(
    body: ScanIn,
    request: Request,
    device: AuthenticatedDevice = Depends(scan_device),
    limiter: ScanRateLimiter = Depends(get_rate_limiter),
    db: Session = Depends(get_db),
):
    """
    Records the attempt in the scan ledger whatever the outcome and answers
    200 (success), 400 (no tagId), 403 (inactive tag/user) or 404 (unknown tag).
    """
    limit = limiter.hit(device.device_id or request.client.host)
    if not limit.allowed:
        logger.warning(f"Rate limit exceeded for device ID: {device.device_id}")
        raise RateLimitedError("Rate limit exceeded. Please try again later.", headers=limit.headers)

    outcome = await process_scan(
        db,
        ScanRequest(tag_id=body.tagId, location=body.location, vehicle_id=body.vehicleId,
                    metadata=body.metadata or {}),
        device,
    )
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_response(), headers=limit.headers)


@router.post("/rfid/register", status_code=201, summary="Register an RFID tag")
def register_rfid(body: TagRegister, admin: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    tag = tag_registry.register_tag(db, body.tagId, registered_by=admin.id,
                                    user_id=body.userId, metadata=body.metadata)
    user = tag.user
    return {
        "success": True,
        "message": "RFID tag registered successfully",
        "data": {
            **TagOut.model_validate(tag).model_dump(mode="json"),
            "user": {"id": user.id, "name": user.name, "email": user.email} if user else None,
        },
    }


@router.get("/rfid/scans/unregistered", summary="Recent scans of unregistered tags")
def get_recent_unregistered_scans(admin: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    """Polled by the admin UI to pick up a freshly tapped card during registration."""
    scans = scan_ledger.recent_unregistered_scans(db)
    return {
        "success": True,
        "data": [
            UnregisteredScanOut(id=s.id, tagId=s.tag_id, location=s.location,
                                deviceId=s.device_id, scanTime=s.scan_time).model_dump(mode="json")
            for s in scans
        ],
    }


@router.get("/rfid/check-recent-scan/{tag_id}", summary="Was this tag scanned in the last few seconds?")
def check_recent_scan(tag_id: str, admin: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    scan = scan_ledger.check_recent_tag_scan(db, tag_id)
    return {
        "success": True,
        "found": scan is not None,
        "data": ScanRecordOut.model_validate(scan).model_dump(mode="json") if scan else None,
    }


@router.get("/rfid/tags/{tag_id}", summary="RFID tag details")
def get_rfid_info(tag_id: str, admin: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    tag = tag_registry.find_by_tag(db, tag_id)
    user = tag.user
    return {
        "success": True,
        "data": {
            **TagOut.model_validate(tag).model_dump(mode="json"),
            "metadata": tag.metadata_ or {},
            "scanCount": scan_ledger.count_for_tag(db, tag.tag_id),
            "user": {"id": user.id, "name": user.name, "email": user.email, "role": user.role} if user else None,
        },
    }


@router.put("/rfid/tags/{tag_id}/status", summary="Activate or deactivate a tag")
def update_rfid_status(
    tag_id: str,
    body: TagStatusUpdate,
    admin: AdminPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    tag = tag_registry.set_tag_active(db, tag_id, body.isActive, reason=body.reason, changed_by=admin.id)
    return {
        "success": True,
        "message": f"RFID tag {'activated' if tag.is_active else 'deactivated'} successfully",
        "data": {"tagId": tag.tag_id, "isActive": tag.is_active, "updatedAt": tag.updated_at.isoformat()},
    }
