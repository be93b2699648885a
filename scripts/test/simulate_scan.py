# scripts/test/simulate_scan.py
"""Act as an ESP32 reader: send heartbeats, poll registration mode, submit scans."""

import argparse
import requests

BACKEND_URL = "http://127.0.0.1:3000/api"


def heartbeat(device_id):
    resp = requests.post(f"{BACKEND_URL}/devices/{device_id}/heartbeat", timeout=10)
    print(f"💓 heartbeat {device_id} → HTTP {resp.status_code}: {resp.json()}")


def poll_registration(device_id, api_key):
    resp = requests.get(f"{BACKEND_URL}/devices/registration-mode/{device_id}",
                        headers={"X-API-Key": api_key}, timeout=10)
    print(f"📋 registration-mode {device_id} → HTTP {resp.status_code}: {resp.json()}")


def scan(tag, api_key, location=None, vehicle=None, repeat=1):
    payload = {"tagId": tag}
    if location:
        payload["location"] = location
    if vehicle:
        payload["vehicleId"] = vehicle
    for _ in range(repeat):
        resp = requests.post(f"{BACKEND_URL}/rfid/scan", json=payload,
                             headers={"X-API-Key": api_key}, timeout=10)
        remaining = resp.headers.get("X-RateLimit-Remaining")
        print(f"✅ scan tag={tag} → HTTP {resp.status_code} (remaining={remaining}): {resp.json()}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate an RFID reader for testing")
    parser.add_argument("--action", default="scan", choices=["scan", "heartbeat", "poll"])
    parser.add_argument("--key", help="X-API-Key value, <prefix>_<secret>")
    parser.add_argument("--device", default="001122334455")
    parser.add_argument("--tag", default="T1")
    parser.add_argument("--location", default="Main Gate")
    parser.add_argument("--vehicle")
    parser.add_argument("--repeat", type=int, default=1)
    args = parser.parse_args()

    if args.action == "heartbeat":
        heartbeat(args.device)
    elif args.action == "poll":
        poll_registration(args.device, args.key)
    else:
        scan(args.tag, args.key, args.location, args.vehicle, args.repeat)
