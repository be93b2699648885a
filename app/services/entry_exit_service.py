# app/services/entry_exit_service.py
"""
Entry/exit inference for successful scans.

RFID readers don't know direction, so it is inferred from the user's most
recent ledger row:

  - no owning user            -> unknown
  - no prior row              -> entry (first sighting)
  - prior row, same location  -> toggle prior event
  - location name says "entrance"/"entry" -> entry, "exit" -> exit
  - otherwise                 -> toggle prior event

This is a heuristic. Two near-simultaneous scans can both read the same
prior row and both infer "entry"; nothing serialises them.
"""

from typing import Optional

from sqlalchemy.orm import Session

from app.models.rfid_scan import RfidScan, EVENT_ENTRY, EVENT_EXIT, EVENT_UNKNOWN
from app.services.scan_ledger import latest_for_user
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _toggle(prior_event: str) -> str:
    return EVENT_EXIT if prior_event == EVENT_ENTRY else EVENT_ENTRY


def decide_event_type(user_id: Optional[int], prior: Optional[RfidScan], location: Optional[str]) -> str:
    if not user_id:
        return EVENT_UNKNOWN
    if prior is None:
        return EVENT_ENTRY
    if prior.location == location:
        return _toggle(prior.event_type)

    if location:
        lowered = location.lower()
        if "entrance" in lowered or "entry" in lowered:
            return EVENT_ENTRY
        if "exit" in lowered:
            return EVENT_EXIT

    return _toggle(prior.event_type)


def infer_event_type(db: Session, user_id: Optional[int], location: Optional[str]) -> str:
    """Read the user's latest ledger row and apply decide_event_type()."""
    if not user_id:
        return EVENT_UNKNOWN
    prior = latest_for_user(db, user_id)
    event_type = decide_event_type(user_id, prior, location or None)
    logger.debug(
        f"[INFER] user={user_id} location={location!r} "
        f"prior={prior.event_type if prior else None}@{prior.location if prior else None} -> {event_type}"
    )
    return event_type
