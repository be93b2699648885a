"""
Device management from the terminal.

Usage:
  python scripts/setup/manage_devices.py register 00:11:22:33:44:55 "Entrance Gate" "Main Building"
  python scripts/setup/manage_devices.py list
  python scripts/setup/manage_devices.py enable-reg 001122334455 [TAG-ID]
  python scripts/setup/manage_devices.py disable-reg 001122334455
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import argparse
import json

from app.database import SessionLocal, create_tables
from app.services import device_registry
from app.utils.exceptions import RFIDTrackingError


def _summary(device, online=None) -> dict:
    return {
        "deviceId": device.device_id,
        "macAddress": device.mac_address,
        "name": device.name,
        "location": device.location,
        "isActive": device.is_active,
        "registrationMode": device.registration_mode,
        "pendingTagId": device.pending_registration_tag_id,
        "scanMode": device.scan_mode,
        "lastSeen": device.last_seen.isoformat() if device.last_seen else None,
        "online": online,
    }


def main():
    parser = argparse.ArgumentParser(description="TagSakay device management")
    sub = parser.add_subparsers(dest="command", required=True)

    reg = sub.add_parser("register", help="Register a new device")
    reg.add_argument("mac")
    reg.add_argument("name")
    reg.add_argument("location")

    sub.add_parser("list", help="List all registered devices")

    enable = sub.add_parser("enable-reg", help="Enable registration mode for a device")
    enable.add_argument("device_id")
    enable.add_argument("tag_id", nargs="?", default=None)

    disable = sub.add_parser("disable-reg", help="Disable registration mode for a device")
    disable.add_argument("device_id")

    args = parser.parse_args()
    create_tables()
    db = SessionLocal()
    try:
        if args.command == "register":
            device, api_key = device_registry.register_device(db, args.mac, args.name, args.location)
            result = {**_summary(device), "apiKey": api_key}
            print("⚠️  Store this API key now, it cannot be shown again.")
        elif args.command == "list":
            result = [_summary(d, online) for d, online in device_registry.list_devices(db)]
        elif args.command == "enable-reg":
            result = _summary(device_registry.set_registration_mode(db, args.device_id, True, args.tag_id))
        else:
            result = _summary(device_registry.set_registration_mode(db, args.device_id, False))
        print(json.dumps(result, indent=2))
    except RFIDTrackingError as e:
        print(f"❌ {e.message}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
