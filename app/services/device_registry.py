# app/services/device_registry.py
"""
Device Registry: scanner hardware records.

Registration mode: an admin arms a device to capture the next tag it reads
(a specific pending tag, or any unknown tag when scan_mode is set). The mode
lapses REGISTRATION_MODE_TIMEOUT_SECONDS after it was enabled. There is no
background timer: every read goes through _expire_registration_mode().
"""

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import settings
from app.models.device import Device
from app.services.credential_store import hash_secret
from app.utils.exceptions import ConflictError, NotRegisteredError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEVICE_KEY_PREFIX = "dev"
REGISTRATION_CLEAR_REASONS = {"registration_success", "registration_timeout"}
_MAC_SEPARATORS = re.compile(r"[:\-.\s]")
_MAC_HEX = re.compile(r"^[0-9A-F]{12}$")


@dataclass
class RegistrationModeState:
    registration_mode: bool
    tag_id: str
    scan_mode: bool
    expired: bool = False


def canonicalize_mac(mac_address: str) -> Tuple[str, str]:
    """Return (device_id, display_mac), e.g. ("AABBCCDDEEFF", "AA:BB:CC:DD:EE:FF")."""
    device_id = _MAC_SEPARATORS.sub("", mac_address or "").upper()
    if not _MAC_HEX.match(device_id):
        raise ValidationError(f"Invalid MAC address: {mac_address!r}")
    display = ":".join(device_id[i:i + 2] for i in range(0, 12, 2))
    return device_id, display


def compute_online_status(device: Device, now: Optional[datetime] = None) -> bool:
    """Online iff last_seen is set and no older than DEVICE_ONLINE_WINDOW_MINUTES."""
    if device.last_seen is None:
        return False
    now = now or datetime.utcnow()
    return now - device.last_seen <= timedelta(minutes=settings.DEVICE_ONLINE_WINDOW_MINUTES)


def get_device(db: Session, device_id: str) -> Device:
    """Lookup by device_id. Accepts the MAC in any separator form."""
    key = _MAC_SEPARATORS.sub("", device_id or "").upper()
    device = db.query(Device).filter(Device.device_id == key).first()
    if not device:
        raise NotRegisteredError("Device not found")
    return device


def find_by_api_key(db: Session, composite_key: str) -> Optional[Device]:
    return db.query(Device).filter(Device.api_key_hash == hash_secret(composite_key)).first()


def register_device(db: Session, mac_address: str, name: str, location: str) -> Tuple[Device, str]:
    """Create a device and its one-time key "dev_<64 hex>". Returns (device, key)."""
    if not name or not location:
        raise ValidationError("macAddress, name and location are required")
    device_id, display_mac = canonicalize_mac(mac_address)

    existing = db.query(Device).filter(
        or_(Device.device_id == device_id, Device.mac_address == display_mac)
    ).first()
    if existing:
        logger.error(f"[DEVICES] Device already registered with MAC address: {display_mac}")
        raise ConflictError("Device already registered")

    api_key = f"{DEVICE_KEY_PREFIX}_{secrets.token_hex(32)}"
    now = datetime.utcnow()
    device = Device(
        device_id=device_id,
        mac_address=display_mac,
        name=name,
        location=location,
        api_key_hash=hash_secret(api_key),
        is_active=True,
        registration_mode=False,
        pending_registration_tag_id="",
        scan_mode=False,
        metadata_={},
        created_at=now,
        updated_at=now,
    )
    db.add(device)
    db.commit()
    db.refresh(device)
    logger.info(f"[DEVICES] Registered {name} ({display_mac}) at {location} as {device_id}")
    return device, api_key


def list_devices(db: Session, now: Optional[datetime] = None) -> List[Tuple[Device, bool]]:
    now = now or datetime.utcnow()
    devices = db.query(Device).order_by(Device.created_at.desc()).all()
    return [(d, compute_online_status(d, now)) for d in devices]


def _clear_registration_mode(device: Device):
    device.registration_mode = False
    device.registration_mode_at = None
    device.pending_registration_tag_id = ""
    device.scan_mode = False


def _expire_registration_mode(db: Session, device: Device, now: datetime) -> bool:
    """Clear a lapsed registration mode in place. Returns True when it expired."""
    if not device.registration_mode:
        return False
    enabled_at = device.registration_mode_at or device.last_seen
    timeout = timedelta(seconds=settings.REGISTRATION_MODE_TIMEOUT_SECONDS)
    if enabled_at is not None and now - enabled_at <= timeout:
        return False
    _clear_registration_mode(device)
    device.updated_at = now
    db.commit()
    logger.info(f"[DEVICES] Registration mode for {device.device_id} expired")
    return True


def set_registration_mode(
    db: Session,
    device_id: str,
    enabled: bool = True,
    pending_tag_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Device:
    """
    Arm or disarm registration mode. Enabling without a tag turns on
    scan_mode (accept any new tag). Always stamps last_seen.
    """
    now = now or datetime.utcnow()
    device = get_device(db, device_id)
    if enabled:
        device.registration_mode = True
        device.registration_mode_at = now
        device.pending_registration_tag_id = pending_tag_id or ""
        device.scan_mode = not pending_tag_id
    else:
        _clear_registration_mode(device)
    device.last_seen = now
    device.updated_at = now
    db.commit()
    logger.info(
        f"[DEVICES] Registration mode {'enabled' if enabled else 'disabled'} for {device.device_id}"
        + (f" (pending tag {pending_tag_id})" if enabled and pending_tag_id else "")
    )
    return device


def get_registration_mode(db: Session, device_id: str, now: Optional[datetime] = None) -> RegistrationModeState:
    """Current registration state, after applying the auto-expiry rule."""
    now = now or datetime.utcnow()
    device = get_device(db, device_id)
    expired = _expire_registration_mode(db, device, now)
    return RegistrationModeState(
        registration_mode=device.registration_mode,
        tag_id=device.pending_registration_tag_id or "",
        scan_mode=device.scan_mode,
        expired=expired,
    )


def accepts_registration(db: Session, device: Device, tag_id: str, now: Optional[datetime] = None) -> bool:
    """Whether an unknown tag scanned by this device should be captured for binding."""
    now = now or datetime.utcnow()
    if _expire_registration_mode(db, device, now) or not device.registration_mode:
        return False
    return device.scan_mode or device.pending_registration_tag_id == tag_id


def heartbeat(db: Session, device_id: str, now: Optional[datetime] = None) -> Device:
    """Stamp last_seen. Unknown hardware is rejected, never auto-created."""
    device = get_device(db, device_id)
    device.last_seen = now or datetime.utcnow()
    db.commit()
    logger.debug(f"[DEVICES] Heartbeat from {device.device_id}")
    return device


def touch_last_seen(db: Session, device: Device, now: Optional[datetime] = None):
    device.last_seen = now or datetime.utcnow()
    db.commit()


def update_status(
    db: Session,
    device_id: str,
    registration_mode: Optional[bool] = None,
    location: Optional[str] = None,
    reason: Optional[str] = None,
    status: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> Device:
    """
    Device-reported status. Keeps the last DEVICE_STATUS_HISTORY_SIZE entries
    in metadata.statusHistory. A device reporting registration_mode=False with
    reason registration_success/registration_timeout disarms itself.
    """
    now = now or datetime.utcnow()
    device = get_device(db, device_id)
    meta = dict(device.metadata_ or {})

    if location:
        device.location = location
    if status:
        meta["status"] = {**meta.get("status", {}), **status, "lastUpdated": now.isoformat()}

    history = list(meta.get("statusHistory", []))
    history.insert(0, {"timestamp": now.isoformat(), "reason": reason, "registrationMode": registration_mode})
    meta["statusHistory"] = history[:settings.DEVICE_STATUS_HISTORY_SIZE]
    device.metadata_ = meta

    if registration_mode is False and reason in REGISTRATION_CLEAR_REASONS and device.registration_mode:
        _clear_registration_mode(device)
        logger.info(f"[DEVICES] Registration mode for {device.device_id} disabled due to {reason}")

    device.last_seen = now
    device.updated_at = now
    db.commit()
    return device
