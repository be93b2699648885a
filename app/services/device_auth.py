# app/services/device_auth.py
"""
Device authentication gate.

Hardware sends "X-API-Key: <prefix>_<secret>". Identity is resolved by an
ordered list of resolvers; the first one that recognises the key wins:

  1. DeviceKeyResolver: the key issued by POST /devices/register
  2. ApiKeyResolver: a Credential Store key, permission-checked, then
     linked to a Device via metadata.macAddress, or a synthetic identity
     for keys with no Device row

A resolver returns None when the key is not one of its own and raises
ForbiddenError when it is, but may not be used (inactive, wrong scope).
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from sqlalchemy.orm import Session

from app.models.api_key import ApiKey, PERMISSION_MANAGE, PERMISSION_SCAN
from app.models.device import Device
from app.services import credential_store, device_registry
from app.utils.exceptions import (
    ForbiddenError, InvalidCredentialError, NotRegisteredError, UnauthorizedError, ValidationError,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PresentedKey:
    raw: str
    prefix: str
    secret: str


@dataclass
class AuthenticatedDevice:
    device_id: str
    name: str
    source: str                       # device_key | api_key
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    device: Optional[Device] = None   # None for keys not linked to a Device row
    api_key: Optional[ApiKey] = None


class DeviceKeyResolver:
    """Match the full key against the digest stored on the Device row."""

    def resolve_device(self, db: Session, key: PresentedKey, permission: str) -> Optional[AuthenticatedDevice]:
        device = device_registry.find_by_api_key(db, key.raw)
        if device is None:
            return None
        if not device.is_active:
            logger.warning(f"[AUTH] Inactive device {device.device_id} presented its key")
            raise ForbiddenError("Device is inactive")
        return AuthenticatedDevice(
            device_id=device.device_id,
            name=device.name,
            source="device_key",
            permissions=frozenset({PERMISSION_SCAN, PERMISSION_MANAGE}),
            device=device,
        )


class ApiKeyResolver:
    """Credential Store lookup followed by the permission check."""

    def resolve_device(self, db: Session, key: PresentedKey, permission: str) -> Optional[AuthenticatedDevice]:
        try:
            api_key = credential_store.resolve_api_key(db, key.prefix, key.secret)
        except InvalidCredentialError:
            return None
        credential_store.require_permission(db, api_key, permission)

        device = self._linked_device(db, api_key)
        if device is not None and not device.is_active:
            logger.warning(f"[AUTH] API key prefix={api_key.prefix} belongs to inactive device {device.device_id}")
            raise ForbiddenError("Device is inactive")

        credential_store.touch_usage(db, api_key)
        if device is not None:
            return AuthenticatedDevice(
                device_id=device.device_id,
                name=device.name,
                source="api_key",
                permissions=api_key.permissions,
                device=device,
                api_key=api_key,
            )
        # Legacy key with no Device row: identity comes from the key alone
        return AuthenticatedDevice(
            device_id=api_key.device_id,
            name=api_key.name,
            source="api_key",
            permissions=api_key.permissions,
            api_key=api_key,
        )

    @staticmethod
    def _linked_device(db: Session, api_key: ApiKey) -> Optional[Device]:
        mac = api_key.mac_address
        if not mac:
            return None
        try:
            return device_registry.get_device(db, mac)
        except NotRegisteredError:
            return None


DEFAULT_RESOLVERS: List = [DeviceKeyResolver(), ApiKeyResolver()]


def parse_key(header_value: Optional[str]) -> PresentedKey:
    if not header_value:
        logger.warning("[AUTH] Device authentication failed: no API key provided")
        raise UnauthorizedError("credential required")
    try:
        prefix, secret = credential_store.split_api_key(header_value)
    except ValidationError:
        logger.warning("[AUTH] Device authentication failed: invalid API key format")
        raise UnauthorizedError("malformed credential")
    return PresentedKey(raw=header_value, prefix=prefix, secret=secret)


def authenticate_device(
    db: Session,
    header_value: Optional[str],
    permission: str,
    resolvers: Optional[List] = None,
) -> AuthenticatedDevice:
    key = parse_key(header_value)
    for resolver in resolvers if resolvers is not None else DEFAULT_RESOLVERS:
        identity = resolver.resolve_device(db, key, permission)
        if identity is not None:
            logger.info(f"[AUTH] Device authenticated: {identity.name} ({identity.device_id}) via {identity.source}")
            return identity
    logger.warning(f"[AUTH] Device authentication failed: unknown key prefix={key.prefix}")
    raise UnauthorizedError("Invalid API key")


def require_same_device(identity: AuthenticatedDevice, device_id: str):
    """Device-scoped endpoints only answer to the device named in the path."""
    requested = device_id.replace(":", "").replace("-", "").upper()
    if identity.device_id.replace(":", "").upper() != requested:
        logger.warning(f"[AUTH] Device {identity.device_id} tried to act as {device_id}")
        raise ForbiddenError("API key does not belong to this device")
