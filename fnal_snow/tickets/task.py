"""Catalog tasks, worked from the standard ticket reports."""

from __future__ import annotations

from fnal_snow.tickets.base import Record, Ticket


class Task(Ticket):
    table = "sc_task"
    type_pretty = "task"
    type_short = "task"

    FILTERS = {
        "open": "state<3",
        "closed": "state>=3",
        "unresolved": "state!=3",
        "cancelled": "state=4",
    }
    RESOLVE_UPDATE = {"state": 3}  # Closed Complete
    REOPEN_UPDATE = {"state": 2}

    def is_resolved(self, tkt: Record) -> bool:
        try:
            return int(tkt.get("state") or 0) >= 3
        except (TypeError, ValueError):
            return False

    def _status(self, tkt: Record) -> str:
        return tkt.get("dv_state") or ""
