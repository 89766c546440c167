"""Requested Items (RITMs).

RITMs are generated from Request tickets.  They are fairly non-standard and
are meant to be opened and closed quickly; their lifecycle is tracked in
``stage`` rather than an incident state.
"""

from __future__ import annotations

from fnal_snow.tickets.base import Record, Ticket, format_date, format_text_field

CLOSED_STAGES = ("complete", "Request Cancelled")


class RITM(Ticket):
    table = "sc_req_item"
    type_pretty = "requested item"
    type_short = "ritm"

    FILTERS = {
        "open": "stageNOT IN" + ",".join(CLOSED_STAGES),
        "closed": "stageIN" + ",".join(CLOSED_STAGES),
        "unresolved": "stage!=complete",
        "cancelled": "stage=Request Cancelled",
    }
    RESOLVE_UPDATE = {"state": 3, "stage": "complete"}
    REOPEN_UPDATE = {"state": 2, "stage": "fulfillment"}

    def is_resolved(self, tkt: Record) -> bool:
        return self._stage(tkt) in CLOSED_STAGES

    def string_primary(self, tkt: Record) -> list[str]:
        lines = ["Primary Ticket Information"]
        lines.extend(
            format_text_field(
                [
                    ("Number", self._number(tkt)),
                    ("Summary", self._summary(tkt)),
                    ("Status", self._status(tkt)),
                    ("Approval", self._approval(tkt)),
                    ("Submitted", format_date(self._date_submit(tkt))),
                    ("Urgency", self._urgency(tkt)),
                    ("Priority", self._priority(tkt)),
                    ("Request", self._request(tkt)),
                ]
            )
        )
        return lines

    def string_requestor(self, tkt: Record) -> list[str]:
        requestor = self.user_by_username(self._requestor(tkt)) or {}
        creator = self.user_by_name(self._opened_by(tkt)) or {}
        lines = ["Requestor Info"]
        lines.extend(
            format_text_field(
                [
                    ("Name", requestor.get("dv_name")),
                    ("Email", requestor.get("dv_email")),
                    ("Opened By", creator.get("dv_email")),
                ]
            )
        )
        return lines

    def string_short(self, tkt: Record) -> list[str]:
        """Like string_base(), without the journal."""
        lines = self.string_primary(tkt)
        lines += [""] + self.string_requestor(tkt)
        lines += [""] + self.string_assignee(tkt)
        lines += [""] + self.string_description(tkt)
        if self.is_resolved(tkt):
            lines += [""] + self.string_resolution(tkt)
        return lines

    def _approval(self, tkt: Record) -> str:
        return tkt.get("dv_approval") or "(none)"

    def _request(self, tkt: Record) -> str:
        return tkt.get("dv_request") or "(none)"

    def _stage(self, tkt: Record) -> str:
        return tkt.get("stage") or ""

    def _status(self, tkt: Record) -> str:
        return tkt.get("dv_u_itil_state") or ""
