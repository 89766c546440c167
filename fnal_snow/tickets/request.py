"""Service Catalog Requests and their requested items."""

from __future__ import annotations

from typing import Iterable

from fnal_snow.servicenow_api import QueryResult
from fnal_snow.tickets.base import (
    SUMMARY_LINE1,
    SUMMARY_LINE2,
    SUMMARY_LINE3,
    Record,
    Ticket,
    format_date,
    format_text_field,
    shorten_number,
)
from fnal_snow.tickets.ritm import RITM


class Request(Ticket):
    table = "sc_request"
    type_pretty = "request"
    type_short = "request"

    FILTERS = {
        "open": "stageINrequested,in_process",
        "closed": "stageSTARTSWITHclosed",
        "unresolved": "stage!=closed_complete",
        "cancelled": "stage=closed_cancelled",
    }
    RESOLVE_UPDATE = {"request_state": "closed_complete", "stage": "closed_complete"}
    REOPEN_UPDATE = {"request_state": "in_process", "stage": "in_process"}

    def is_resolved(self, tkt: Record) -> bool:
        return (tkt.get("stage") or "").startswith("closed")

    def string_base(self, tkt: Record) -> list[str]:
        """Primary, requestor, assignee, associated RITMs and resolution."""
        lines = self.string_primary(tkt)
        lines += [""] + self.string_requestor(tkt)
        lines += [""] + self.string_assignee(tkt)
        lines += [""] + self.string_ritms(tkt)
        if self.is_resolved(tkt):
            lines += [""] + self.string_resolution(tkt)
        return lines

    def string_primary(self, tkt: Record) -> list[str]:
        lines = ["Primary Ticket Information"]
        lines.extend(
            format_text_field(
                [
                    ("Number", self._number(tkt)),
                    ("Summary", self._summary(tkt)),
                    ("Status", self._itil_state(tkt)),
                    ("Stage", self._stage(tkt)),
                    ("Submitted", format_date(self._date_submit(tkt))),
                    ("Urgency", self._urgency(tkt)),
                    ("Priority", self._priority(tkt)),
                    ("Request Type", self._reqtype(tkt)),
                ]
            )
        )
        return lines

    def string_requestor(self, tkt: Record) -> list[str]:
        requestor = self.user_by_sysid(self._requestor(tkt)) or {}
        createdby = self.user_by_sysid(self._caller_id(tkt)) or {}
        lines = ["Requestor Info"]
        lines.extend(
            format_text_field(
                [
                    ("Name", requestor.get("name")),
                    ("Email", requestor.get("email")),
                    ("Created By", createdby.get("name") or self._caller_id(tkt)),
                ]
            )
        )
        return lines

    def string_ritms(self, tkt: Record) -> list[str]:
        """Summaries of the requested items attached to this request."""
        lines = ["Associated Requested Items (RITMs)"]
        ritms = self.connection.tkt_list_by_type("ritm", {"request": tkt.get("sys_id", "")})
        if ritms:
            lines.append("")
        ritm = RITM(self.connection)
        for item in ritms:
            lines.extend(ritm.summary([item]))
        return lines

    def summary(self, results: Iterable[QueryResult]) -> list[str]:
        # requestor and assignee lookups are not resolved for requests
        lines = []
        for item in results:
            tkt = item.result
            lines.append(
                SUMMARY_LINE1
                % (
                    shorten_number(self._number(tkt)),
                    "*unknown*",
                    "*unassigned*",
                    self._assigned_group(tkt),
                    self._status(tkt) or self._itil_state(tkt) or self._stage(tkt),
                )
            )
            lines.append(
                SUMMARY_LINE2 % (format_date(self._date_submit(tkt)), format_date(self._date_update(tkt)))
            )
            lines.append(SUMMARY_LINE3 % self._summary(tkt))
        return lines

    def _caller_id(self, tkt: Record) -> str:
        return tkt.get("requested_for") or "(unknown)"

    def _reqtype(self, tkt: Record) -> str:
        return tkt.get("u_request_type") or "(unknown)"

    def _requestor(self, tkt: Record) -> str:
        return tkt.get("opened_by") or "(unknown)"
