# app/models/api_key.py
"""
API keys (device credentials).
Only the SHA-256 digest of the secret is stored; the prefix is the public
lookup discriminator. Permissions are a set of capability tokens
(scan, manage) persisted as a sorted JSON list.
"""

import json
import uuid
from typing import FrozenSet, Iterable

from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, JSON
from app.database import Base

PERMISSION_SCAN = "scan"
PERMISSION_MANAGE = "manage"
DEFAULT_PERMISSIONS = frozenset({PERMISSION_SCAN})


def normalize_permissions(value) -> FrozenSet[str]:
    """
    Read-side normalisation of a stored permissions value.
    Rows written before the column was typed can hold a JSON-encoded string
    ('["scan"]') or a character array (['s','c','a','n']).
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return frozenset({value.strip()}) if value.strip() else frozenset()
        return normalize_permissions(decoded) if not isinstance(decoded, str) else frozenset({decoded})
    tokens = list(value)
    if len(tokens) > 2 and all(isinstance(t, str) and len(t) == 1 for t in tokens):
        return frozenset({"".join(tokens)})
    result = set()
    for token in tokens:
        if isinstance(token, str) and token.startswith("["):
            result |= normalize_permissions(token)
        elif isinstance(token, str) and token.strip():
            result.add(token.strip())
    return frozenset(result)


def _permission_list(tokens: Iterable[str]) -> list:
    if isinstance(tokens, (str, bytes)):
        raise TypeError("permissions must be a collection of tokens, not a single string")
    cleaned = set()
    for token in tokens:
        if not isinstance(token, str) or not token.strip():
            raise TypeError(f"invalid permission token: {token!r}")
        cleaned.add(token.strip())
    return sorted(cleaned)


class ApiKey(Base):
    __tablename__ = "api_keys"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    device_id = Column(String(64), nullable=False, index=True)   # owning device identifier
    description = Column(Text, default="")
    key_hash = Column(String(64), unique=True, nullable=False)
    prefix = Column(String(10), nullable=False, index=True)
    _permissions = Column("permissions", JSON, nullable=False, default=lambda: [PERMISSION_SCAN])
    key_type = Column(String(20), default="device", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_used_at = Column(DateTime)
    created_by = Column(Integer, nullable=False)
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    @property
    def permissions(self) -> FrozenSet[str]:
        return normalize_permissions(self._permissions)

    @permissions.setter
    def permissions(self, tokens: Iterable[str]):
        self._permissions = _permission_list(tokens)

    @property
    def permissions_normalized(self) -> bool:
        """True when the stored value is already the canonical sorted list."""
        return self._permissions == sorted(self.permissions)

    @property
    def mac_address(self):
        return (self.metadata_ or {}).get("macAddress")

    def __repr__(self):
        return f"<ApiKey {self.id} prefix={self.prefix} device={self.device_id}>"
