"""Derive the canonical milestone timeline of an event."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .schemas import Event, Milestone
from .templates import MILESTONE_TEMPLATE

logger = logging.getLogger(__name__)


def _anchor_date(event: Event, anchor: str) -> datetime:
    if anchor == "created":
        return event.created_at
    if anchor == "registration":
        return event.registration_deadline
    if anchor == "start":
        return event.start_date
    if anchor == "end":
        # no end date: treat the event as ending the day it starts
        return event.end_date or event.start_date
    raise ValueError(f"Unknown milestone anchor: {anchor}")


def generate_milestones(event: Event) -> list[Milestone]:
    """
    Build the milestone list for an event, in emission order.

    Registration milestones are only emitted when the event has a
    registration deadline (8 milestones instead of 6). Dependencies only
    reference milestones emitted earlier in the same call. The result is
    not sorted by date. ``end_date < start_date`` is not validated.
    """
    has_registration = event.registration_deadline is not None
    if not has_registration:
        logger.debug("event %s has no registration deadline, skipping registration milestones", event.id)

    created: list[Milestone] = []
    emitted: set[str] = set()
    for t in MILESTONE_TEMPLATE:
        if t["needs_registration"] and not has_registration:
            continue
        due = _anchor_date(event, t["anchor"]) + timedelta(days=t["offset_days"])
        created.append(Milestone(
            id=t["key"],
            name=t["name"],
            description=t["description"],
            due_date=due,
            type=t["type"],
            priority=t["priority"],
            dependencies=[d for d in t["depends_on"] if d in emitted],
        ))
        emitted.add(t["key"])

    return created
