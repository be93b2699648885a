# tests/test_device_registry.py
"""Device Registry: registration, heartbeat, online status, registration mode."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from app.services.credential_store import hash_secret
from app.services.device_registry import (
    canonicalize_mac, compute_online_status, get_device, get_registration_mode, heartbeat,
    list_devices, register_device, set_registration_mode, update_status,
)
from app.utils.exceptions import ConflictError, NotRegisteredError, ValidationError

T0 = datetime(2026, 3, 1, 8, 0, 0)


class TestCanonicalizeMac:
    @pytest.mark.parametrize("mac", ["00:11:22:33:44:55", "00-11-22-33-44-55", "001122334455", "0011.2233.4455"])
    def test_separator_forms(self, mac):
        assert canonicalize_mac(mac) == ("001122334455", "00:11:22:33:44:55")

    def test_lowercase_is_uppercased(self):
        assert canonicalize_mac("aa:bb:cc:dd:ee:ff")[0] == "AABBCCDDEEFF"

    @pytest.mark.parametrize("mac", ["", "00:11:22:33:44", "GG:11:22:33:44:55"])
    def test_invalid(self, mac):
        with pytest.raises(ValidationError):
            canonicalize_mac(mac)


class TestRegisterDevice:
    def test_returns_one_time_key(self, db):
        device, key = register_device(db, "00:11:22:33:44:55", "Main Gate Reader", "Main Gate")

        assert key.startswith("dev_") and len(key) == 4 + 64
        assert device.api_key_hash == hash_secret(key)
        assert device.device_id == "001122334455"
        assert device.is_active and not device.registration_mode

    def test_duplicate_mac_conflicts(self, db, registered_device):
        with pytest.raises(ConflictError):
            register_device(db, "00-11-22-33-44-55", "Another", "Side Gate")

    def test_name_and_location_required(self, db):
        with pytest.raises(ValidationError):
            register_device(db, "00:11:22:33:44:66", "", "Side Gate")

    def test_lookup_accepts_any_mac_form(self, db, registered_device):
        device, _ = registered_device
        assert get_device(db, "00:11:22:33:44:55").id == device.id


class TestHeartbeatAndOnline:
    def test_unknown_device_rejected(self, db):
        with pytest.raises(NotRegisteredError):
            heartbeat(db, "FFFFFFFFFFFF")

    def test_heartbeat_marks_online(self, db, registered_device):
        device, _ = registered_device
        heartbeat(db, device.device_id, now=T0)

        assert compute_online_status(device, now=T0 + timedelta(minutes=15)) is True
        assert compute_online_status(device, now=T0 + timedelta(minutes=15, seconds=1)) is False

    def test_never_seen_is_offline(self):
        device = MagicMock(last_seen=None)
        assert compute_online_status(device) is False

    def test_list_reports_online_flag(self, db, registered_device):
        device, _ = registered_device
        heartbeat(db, device.device_id, now=T0)

        [(listed, online)] = list_devices(db, now=T0 + timedelta(minutes=1))
        assert listed.id == device.id and online is True


class TestRegistrationMode:
    def test_enable_without_tag_turns_on_scan_mode(self, db, registered_device):
        device, _ = registered_device
        set_registration_mode(db, device.device_id, enabled=True, now=T0)

        state = get_registration_mode(db, device.device_id, now=T0 + timedelta(seconds=30))
        assert state.registration_mode is True
        assert state.scan_mode is True
        assert state.tag_id == ""

    def test_enable_with_pending_tag(self, db, registered_device):
        device, _ = registered_device
        set_registration_mode(db, device.device_id, enabled=True, pending_tag_id="CARD-9", now=T0)

        state = get_registration_mode(db, device.device_id, now=T0)
        assert state.tag_id == "CARD-9"
        assert state.scan_mode is False

    def test_still_armed_at_timeout(self, db, registered_device):
        device, _ = registered_device
        set_registration_mode(db, device.device_id, enabled=True, now=T0)

        state = get_registration_mode(db, device.device_id, now=T0 + timedelta(seconds=120))
        assert state.registration_mode is True

    def test_expires_after_timeout(self, db, registered_device):
        device, _ = registered_device
        set_registration_mode(db, device.device_id, enabled=True, pending_tag_id="CARD-9", now=T0)

        state = get_registration_mode(db, device.device_id, now=T0 + timedelta(seconds=121))

        assert state.expired is True
        assert state.registration_mode is False
        assert state.tag_id == ""
        db.expire_all()
        assert get_device(db, device.device_id).registration_mode is False

    def test_heartbeat_does_not_extend_mode(self, db, registered_device):
        device, _ = registered_device
        set_registration_mode(db, device.device_id, enabled=True, now=T0)
        heartbeat(db, device.device_id, now=T0 + timedelta(seconds=100))

        state = get_registration_mode(db, device.device_id, now=T0 + timedelta(seconds=121))
        assert state.registration_mode is False

    def test_disable_clears_state(self, db, registered_device):
        device, _ = registered_device
        set_registration_mode(db, device.device_id, enabled=True, pending_tag_id="CARD-9", now=T0)
        set_registration_mode(db, device.device_id, enabled=False, now=T0)

        state = get_registration_mode(db, device.device_id, now=T0)
        assert (state.registration_mode, state.tag_id, state.scan_mode) == (False, "", False)


class TestUpdateStatus:
    def test_history_capped(self, db, registered_device):
        device, _ = registered_device
        for i in range(12):
            update_status(db, device.device_id, reason=f"report-{i}", now=T0 + timedelta(seconds=i))

        history = get_device(db, device.device_id).metadata_["statusHistory"]
        assert len(history) == 10
        assert history[0]["reason"] == "report-11"

    def test_registration_timeout_report_disarms(self, db, registered_device):
        device, _ = registered_device
        set_registration_mode(db, device.device_id, enabled=True, now=T0)

        update_status(db, device.device_id, registration_mode=False, reason="registration_timeout", now=T0)

        assert get_device(db, device.device_id).registration_mode is False

    def test_other_reason_leaves_mode_armed(self, db, registered_device):
        device, _ = registered_device
        set_registration_mode(db, device.device_id, enabled=True, now=T0)

        update_status(db, device.device_id, registration_mode=False, reason="reboot", now=T0)

        assert get_device(db, device.device_id).registration_mode is True

    def test_location_and_status_merged(self, db, registered_device):
        device, _ = registered_device
        update_status(db, device.device_id, location="North Exit", status={"wifi": -60}, now=T0)

        device = get_device(db, device.device_id)
        assert device.location == "North Exit"
        assert device.metadata_["status"]["wifi"] == -60
