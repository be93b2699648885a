# tests/test_credential_store.py
"""Credential Store: key issuance, lookup, permission normalisation and repair."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from app.models.api_key import ApiKey, normalize_permissions
from app.services.credential_store import (
    create_api_key, find_api_key, has_permission, hash_secret, require_permission,
    resolve_api_key, split_api_key, touch_usage,
)
from app.utils.exceptions import ForbiddenError, InvalidCredentialError, ValidationError


class TestNormalizePermissions:
    def test_canonical_list(self):
        assert normalize_permissions(["scan", "manage"]) == {"scan", "manage"}

    def test_json_encoded_string(self):
        assert normalize_permissions('["scan","manage"]') == {"scan", "manage"}

    def test_character_array(self):
        assert normalize_permissions(["s", "c", "a", "n"]) == {"scan"}

    def test_nested_json_token(self):
        assert normalize_permissions(['["scan"]', "manage"]) == {"scan", "manage"}

    def test_none_is_empty(self):
        assert normalize_permissions(None) == frozenset()

    def test_setter_rejects_bare_string(self):
        api_key = ApiKey()
        with pytest.raises(TypeError):
            api_key.permissions = "scan"

    def test_setter_stores_sorted_list(self):
        api_key = ApiKey()
        api_key.permissions = {"scan", "manage"}
        assert api_key._permissions == ["manage", "scan"]
        assert api_key.permissions_normalized


class TestSplitApiKey:
    def test_splits_on_first_underscore(self):
        assert split_api_key("ab12cd_dead_beef") == ("ab12cd", "dead_beef")

    @pytest.mark.parametrize("value", ["nounderscore", "_secretonly", "prefixonly_"])
    def test_malformed(self, value):
        with pytest.raises(ValidationError):
            split_api_key(value)


class TestCreateAndResolve:
    def test_composite_key_resolves(self, db):
        api_key, full_key = create_api_key(db, "Gate 1", "GATE-1", created_by=1)
        prefix, secret = split_api_key(full_key)

        assert api_key.prefix == prefix
        assert api_key.key_hash == hash_secret(secret)
        assert secret not in (api_key.key_hash, api_key.prefix)
        assert resolve_api_key(db, prefix, secret).id == api_key.id
        assert api_key.permissions == {"scan"}

    def test_mac_address_kept_in_metadata(self, db):
        api_key, _ = create_api_key(db, "Gate 1", "GATE-1", created_by=1, mac_address="00:11:22:33:44:55")
        assert api_key.mac_address == "00:11:22:33:44:55"

    def test_name_required(self, db):
        with pytest.raises(ValidationError):
            create_api_key(db, "", "GATE-1", created_by=1)

    def test_unknown_key_is_invalid(self, db):
        with pytest.raises(InvalidCredentialError):
            resolve_api_key(db, "ffffff", "nope")

    def test_wrong_secret_is_invalid(self, db):
        _, full_key = create_api_key(db, "Gate 1", "GATE-1", created_by=1)
        prefix, _ = split_api_key(full_key)
        assert find_api_key(db, prefix, "not-the-secret") is None

    def test_inactive_key_is_forbidden(self, db):
        api_key, full_key = create_api_key(db, "Gate 1", "GATE-1", created_by=1)
        api_key.is_active = False
        db.commit()

        with pytest.raises(ForbiddenError):
            resolve_api_key(db, *split_api_key(full_key))

    def test_legacy_permissions_repaired_on_read(self, db):
        api_key, full_key = create_api_key(db, "Gate 1", "GATE-1", created_by=1)
        api_key._permissions = ["s", "c", "a", "n"]
        db.commit()

        resolved = resolve_api_key(db, *split_api_key(full_key))

        db.expire_all()
        assert resolved._permissions == ["scan"]


class TestPermissions:
    def test_device_key_granted_baseline_scan(self, db):
        api_key, _ = create_api_key(db, "Gate 1", "GATE-1", created_by=1, permissions={"manage"})

        assert has_permission(db, api_key, "scan") is True
        db.expire_all()
        assert api_key.permissions == {"scan", "manage"}
        # second call finds it already stored
        assert has_permission(db, api_key, "scan") is True
        assert api_key._permissions == ["manage", "scan"]

    def test_admin_key_not_granted_scan(self, db):
        api_key, _ = create_api_key(db, "Dashboard", "ADMIN", created_by=1,
                                    permissions={"manage"}, key_type="admin")
        assert has_permission(db, api_key, "scan") is False

    def test_missing_manage_is_forbidden(self, db):
        api_key, _ = create_api_key(db, "Gate 1", "GATE-1", created_by=1)
        with pytest.raises(ForbiddenError, match="manage"):
            require_permission(db, api_key, "manage")


class TestTouchUsage:
    def test_stamps_last_used(self, db):
        api_key, _ = create_api_key(db, "Gate 1", "GATE-1", created_by=1)
        touch_usage(db, api_key)
        assert api_key.last_used_at is not None

    def test_failure_is_swallowed(self):
        db = MagicMock()
        db.commit.side_effect = OperationalError("UPDATE api_keys", {}, Exception("locked"))
        api_key = ApiKey(prefix="ab12cd")

        touch_usage(db, api_key)

        db.rollback.assert_called_once()
