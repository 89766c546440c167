"""Incidents, the standard unit of work in Service Now."""

from __future__ import annotations

from fnal_snow.tickets.base import Record, Ticket


class Incident(Ticket):
    """Incident tickets; lifecycle tracked in ``incident_state``.

    Subtype filters:

        open        incident_state < 4
        closed      incident_state >= 4
        unresolved  incident_state < 7
        cancelled   incident_state = 8
    """

    table = "incident"
    type_pretty = "incident"
    type_short = "incident"

    FILTERS = {
        "open": "incident_state<4",
        "closed": "incident_state>=4",
        "unresolved": "incident_state<7",
        "cancelled": "incident_state=8",
    }
    RESOLVE_UPDATE = {"incident_state": 6}  # Resolved
    RESOLVE_FIELDS = ("close_notes", "close_code", "resolved_by")
    REOPEN_UPDATE = {
        "incident_state": 2,  # Work In Progress
        "close_notes": "",
        "close_code": "",
        "resolved_at": "",
        "resolved_by": "",
    }

    def is_resolved(self, tkt: Record) -> bool:
        return self._state(tkt) >= 4
