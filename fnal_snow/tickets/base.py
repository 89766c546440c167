"""Common behaviour shared by every SNOW ticket type.

Ticket classes do not hold any ticket data themselves; they are bound to a
:class:`fnal_snow.snow.Snow` connection and operate on flattened records (see
:func:`fnal_snow.servicenow_api.flatten_record`) or on the
:class:`~fnal_snow.servicenow_api.QueryResult` objects that carry them.
Report methods return lists of lines.
"""

from __future__ import annotations

import logging
import re
import textwrap
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence, Union

from fnal_snow.servicenow_api import ENCODED_QUERY_KEY, QueryResult

if TYPE_CHECKING:
    from fnal_snow.snow import Snow

LOGGER = logging.getLogger(__name__)

SUMMARY_LINE1 = "%-12.12s %-14.14s %-14.14s %-17.17s %17.17s"
SUMMARY_LINE2 = " Created: %-24.24s            Updated: %-24.24s"
SUMMARY_LINE3 = " Subject: %-68.68s"

WRAP_COLUMNS = 75
DATE_FORMAT = "%Y-%m-%d %H:%M:%S %Z"
QUERY_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INPUT_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
)
UTC_ZONES = {"GMT", "UTC"}
MIN_EPOCH_DIGITS = 9
COMPACT_DATE_FORMAT = "%Y%m%d"

NUMBER_WIDTHS = {"INC": 15, "REQ": 15, "TASK": 11, "RITM": 11}
NUMBER_PATTERN = re.compile(r"^(INC|REQ|TASK|RITM)(\d+)$")
SHORTEN_PATTERN = re.compile(r"^(INC|RITM|TASK|TKT|REQ)0+")

Record = Mapping[str, Any]
FieldPairs = Sequence[tuple[str, Any]]


class UnsupportedOperation(NotImplementedError):
    """Raised when a ticket type does not support an action."""


# ---------------------------------------------------------------------- #
# Ticket numbers
# ---------------------------------------------------------------------- #
def parse_ticket_number(num: Optional[str]) -> Optional[str]:
    """Standardize a ticket number.

    ``INC``/``REQ`` numbers are zero-padded to 15 characters and
    ``TASK``/``RITM`` numbers to 11.  A bare number is assumed to be an
    incident.  Returns None if the string is not a recognizable number.
    """
    if not num:
        return None
    num = str(num).strip().upper()
    match = NUMBER_PATTERN.match(num)
    if match:
        prefix, digits = match.groups()
        return prefix + digits.zfill(NUMBER_WIDTHS[prefix] - len(prefix))
    if num.isdigit():
        return "INC" + num.zfill(NUMBER_WIDTHS["INC"] - 3)
    return None


def shorten_number(num: str) -> str:
    """Trim the leading zeros after the ticket prefix (INC000000012345 -> INC12345)."""
    return SHORTEN_PATTERN.sub(r"\1", num)


# ---------------------------------------------------------------------- #
# Text formatting
# ---------------------------------------------------------------------- #
def to_epoch(value: Any, zone: Optional[str] = None) -> Optional[float]:
    """Convert an epoch, datetime or date string into seconds since the epoch.

    Naive date strings are read as local time unless ``zone`` is GMT/UTC.
    Digit strings of nine or more characters are epoch seconds; eight digits
    are a compact ``YYYYMMDD`` date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    patterns: Sequence[str] = INPUT_DATE_FORMATS
    if text.isdigit():
        if len(text) >= MIN_EPOCH_DIGITS:
            return float(text)
        patterns = (COMPACT_DATE_FORMAT,) if len(text) == 8 else ()
    for pattern in patterns:
        try:
            parsed = datetime.strptime(text, pattern)
        except ValueError:
            continue
        if zone and zone.upper() in UTC_ZONES:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    LOGGER.debug("Unable to parse date value '%s'", value)
    return None


def format_date(value: Any, zone: Optional[str] = None) -> str:
    timestamp = to_epoch(value, zone)
    if timestamp is None:
        return "%-20s" % "(unknown)"
    return time.strftime(DATE_FORMAT, time.localtime(timestamp))


def _wrap(text: str, initial: str = "", subsequent: str = "") -> list[str]:
    wrapped = textwrap.wrap(
        text,
        width=WRAP_COLUMNS,
        initial_indent=initial,
        subsequent_indent=subsequent,
    )
    return wrapped or [initial.rstrip()]


def format_text(text: Any, prefix: str = "") -> list[str]:
    """Wrap free text, keeping its own line breaks, with every line prefixed."""
    lines: list[str] = []
    for paragraph in str(text or "").splitlines() or [""]:
        lines.extend(_wrap(paragraph, prefix, prefix))
    return lines


def format_text_field(pairs: FieldPairs, minwidth: int = 20, prefix: str = "  ") -> list[str]:
    """Print label/value pairs as an aligned, wrapped block.

    The label column is at least ``minwidth`` characters wide; empty values
    print as ``*unknown*``.
    """
    entries = [(f"{label}:", str(value) if value else "*unknown*") for label, value in pairs]
    width = max([minwidth] + [len(label) for label, _ in entries])
    lines: list[str] = []
    for label, value in entries:
        line = "%-*s %s" % (width, label, value)
        lines.extend(_wrap(line, prefix, prefix + " " * (width + 1)))
    return lines


class Ticket:
    """Template for the SNOW ticket types.

    Subclasses set the table name and vocabulary, the subtype filters over
    their lifecycle field, the resolve/reopen updates and ``is_resolved``.
    """

    table = "unknown"
    type_pretty = "unknown"
    type_short = "unknown"

    FILTERS: Mapping[str, str] = {}
    RESOLVE_UPDATE: Mapping[str, Any] = {}
    RESOLVE_FIELDS: tuple[str, ...] = ()
    REOPEN_UPDATE: Mapping[str, Any] = {}

    def __init__(self, connection: "Snow") -> None:
        self.connection = connection

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self.table!r})"

    @property
    def debug(self) -> bool:
        return self.connection.debug

    # ------------------------------------------------------------------ #
    # Filters
    # ------------------------------------------------------------------ #
    @classmethod
    def build_filter(
        cls,
        subtype: Optional[str] = None,
        unassigned: bool = False,
        submit_before: Union[int, float, datetime, None] = None,
    ) -> tuple[str, str]:
        """Return the encoded query and the description of a ticket search.

        Supported beyond the per-type subtypes:

            submit_before   opened_at < YYYY-MM-DD HH:MM:SS
            unassigned      assigned_to is empty
        """
        text, extra = cls.build_filter_extra(subtype)
        if unassigned:
            text = f"Unassigned {text}"
            extra.append("assigned_toISEMPTY")
        if submit_before:
            when = to_epoch(submit_before)
            if when is None:
                raise ValueError(f"invalid submit_before value: {submit_before!r}")
            text = f"{text} submitted before {time.strftime(DATE_FORMAT, time.localtime(when))}"
            # stored dates are UTC
            extra.append(f"opened_at<{time.strftime(QUERY_DATE_FORMAT, time.gmtime(when))}")
        return "^".join(extra), text

    @classmethod
    def build_filter_extra(cls, subtype: Optional[str] = None) -> tuple[str, list[str]]:
        subtype = (subtype or "").lower()
        noun = f"{cls.type_short}s"
        if subtype in cls.FILTERS:
            return f"{subtype.capitalize()} {noun}", [cls.FILTERS[subtype]]
        return f"All {noun}", []

    # ------------------------------------------------------------------ #
    # Database access
    # ------------------------------------------------------------------ #
    def query(self, table: str, params: Mapping[str, Any]) -> list[QueryResult]:
        return self.connection.query(table, params)

    def search(self, search: Optional[Mapping[str, Any]] = None, extra: Optional[str] = None) -> list[QueryResult]:
        params = dict(search or {})
        if extra:
            params[ENCODED_QUERY_KEY] = extra
        return self.query(self.table, params)

    def update(self, number: str, **fields: Any) -> list[QueryResult]:
        """Update the ticket with the given number; returns the updated records."""
        return self.connection.update(self.table, {"number": number}, fields)

    def create(self, **fields: Any) -> Optional[str]:
        """Create a ticket of this type and return its number, or None on failure."""
        items = self.connection.create(self.table, fields)
        if len(items) != 1:
            return None
        return items[0].result.get("number") or None

    def assign(self, number: str, group: Optional[str] = None, user: Optional[str] = None) -> list[QueryResult]:
        """Assign a ticket to a group and/or user.

        An empty ``user`` clears the assignee; None leaves it untouched.
        """
        fields: dict[str, Any] = {}
        if group:
            fields["assignment_group"] = group
        if user is not None:
            fields["assigned_to"] = user or ""
        if not fields:
            LOGGER.warning("assign %s: nothing to change", number)
            return []
        return self.update(number, **fields)

    # ------------------------------------------------------------------ #
    # Resolution
    # ------------------------------------------------------------------ #
    def is_resolved(self, tkt: Record) -> bool:
        LOGGER.warning("is_resolved: unsupported for %s", self.type_pretty)
        return False

    def resolve(
        self,
        number: str,
        text: Optional[str] = None,
        close_code: Optional[str] = None,
        user: Optional[str] = None,
    ) -> list[QueryResult]:
        if not self.RESOLVE_UPDATE:
            raise UnsupportedOperation(f"cannot resolve a {self.type_pretty}")
        fields = dict(self.RESOLVE_UPDATE)
        # only types listing a field in RESOLVE_FIELDS send it
        for name, value in (("close_notes", text), ("close_code", close_code), ("resolved_by", user)):
            if name in self.RESOLVE_FIELDS and value:
                fields[name] = value
        return self.update(number, **fields)

    def reopen(self, number: str) -> list[QueryResult]:
        if not self.REOPEN_UPDATE:
            raise UnsupportedOperation(f"cannot reopen a {self.type_pretty}")
        return self.update(number, **self.REOPEN_UPDATE)

    # ------------------------------------------------------------------ #
    # Reports
    # ------------------------------------------------------------------ #
    def list(self, text: str, results: Iterable[QueryResult]) -> list[str]:
        """Summarize a list of tickets, sorted by number, under a header."""
        entries = {}
        for item in results:
            number = (item.result or {}).get("number")
            if not number:
                continue
            entries[number] = self.summary([item])
        lines = [text, ""]
        for number in sorted(entries):
            lines.extend(entries[number])
            lines.append("")
        return lines

    def string_assignee(self, tkt: Record) -> list[str]:
        lines = ["Assignee Info"]
        lines.extend(
            format_text_field(
                [
                    ("Group", self._assigned_group(tkt)),
                    ("Name", self._assigned_person(tkt)),
                    ("Last Modified", format_date(self._date_update(tkt))),
                ]
            )
        )
        return lines

    def string_base(self, tkt: Record) -> list[str]:
        """Primary, requestor, assignee, description, journal and resolution."""
        lines = self.string_primary(tkt)
        lines += [""] + self.string_requestor(tkt)
        lines += [""] + self.string_assignee(tkt)
        lines += [""] + self.string_description(tkt)
        journal = self.string_journal(tkt)
        if journal:
            lines += [""] + journal
        if self.is_resolved(tkt):
            lines += [""] + self.string_resolution(tkt)
        return lines

    def string_debug(self, tkt: Record) -> list[str]:
        """Every field of the record, empty or not."""
        lines = [f"== {tkt.get('sys_id', '')}"]
        for key in sorted(tkt):
            value = tkt[key] if tkt[key] not in (None, "") else "(empty)"
            lines.extend(_wrap("  %-33s  %-s" % (key, value), "", " " * 41))
        return lines

    def string_description(self, tkt: Record) -> list[str]:
        return ["User-Provided Description"] + format_text(self._description(tkt), prefix="  ")

    def string_journal(self, tkt: Record) -> list[str]:
        """Journal entries, newest first; an empty list if there are none."""
        entries = self._journal_entries(tkt)
        if not entries:
            return []
        lines = ["Journal Entries"]
        count = len(entries)
        for entry in reversed(entries):
            journal = entry.result
            lines.append(f"  Entry {count}")
            count -= 1
            lines.extend(
                format_text_field(
                    [
                        ("Date", format_date(self._journal_date(journal), "GMT")),
                        ("Created By", self._journal_author(journal)),
                        ("Type", self._journal_type(journal)),
                    ],
                    prefix="    ",
                )
            )
            lines.append("")
            lines.extend(format_text(self._journal_text(journal), prefix="    "))
            if count:
                lines.append("")
        return lines

    def string_primary(self, tkt: Record) -> list[str]:
        lines = ["Primary Ticket Information"]
        lines.extend(
            format_text_field(
                [
                    ("Number", self._number(tkt)),
                    ("Summary", self._summary(tkt)),
                    ("Status", self._status(tkt)),
                    ("Submitted", format_date(self._date_submit(tkt))),
                    ("Urgency", self._urgency(tkt)),
                    ("Priority", self._priority(tkt)),
                    ("Service Type", self._svctype(tkt)),
                ]
            )
        )
        return lines

    def string_requestor(self, tkt: Record) -> list[str]:
        requestor = self.user_by_username(self._requestor(tkt)) or {}
        createdby = self.user_by_name(self._caller_id(tkt)) or {}
        lines = ["Requestor Info"]
        lines.extend(
            format_text_field(
                [
                    ("Name", createdby.get("name")),
                    ("Email", createdby.get("email")),
                    ("Created By", requestor.get("name") or self._opened_by(tkt)),
                ]
            )
        )
        return lines

    def string_resolution(self, tkt: Record) -> list[str]:
        lines = ["Resolution"]
        lines.extend(
            format_text_field(
                [
                    ("Resolved By", self._resolved_by(tkt)),
                    ("Date", format_date(self._date_resolved(tkt))),
                    ("Close Code", self._resolved_code(tkt)),
                ]
            )
        )
        lines.append("")
        lines.extend(format_text(self._resolved_text(tkt), prefix="  "))
        return lines

    def string_short(self, tkt: Record) -> list[str]:
        """Like string_base(), without the description and journal."""
        lines = self.string_primary(tkt)
        lines += [""] + self.string_requestor(tkt)
        lines += [""] + self.string_assignee(tkt)
        if self.is_resolved(tkt):
            lines += [""] + self.string_resolution(tkt)
        return lines

    def summary(self, results: Iterable[QueryResult]) -> list[str]:
        """Three-line summaries of each ticket, suitable for list reports."""
        lines = []
        for item in results:
            tkt = item.result
            createdby = (
                self.user_by_name(self._caller_id(tkt))
                or self.user_by_username(self._requestor(tkt))
                or {}
            )
            assignedto = {}
            assignee = self._assigned_person(tkt)
            if assignee != "(none)":
                assignedto = self.user_by_name(assignee) or {}
            lines.append(
                SUMMARY_LINE1
                % (
                    shorten_number(self._number(tkt)),
                    createdby.get("dv_user_name") or "*unknown*",
                    assignedto.get("dv_user_name") or "*unassigned*",
                    self._assigned_group(tkt),
                    self._status(tkt) or self._itil_state(tkt) or self._stage(tkt),
                )
            )
            lines.append(
                SUMMARY_LINE2 % (format_date(self._date_submit(tkt)), format_date(self._date_update(tkt)))
            )
            lines.append(SUMMARY_LINE3 % self._summary(tkt))
        return lines

    # ------------------------------------------------------------------ #
    # Users and groups
    # ------------------------------------------------------------------ #
    def user_by_name(self, name: str) -> Optional[dict[str, Any]]:
        return self.connection.user_by_name(name)

    def user_by_sysid(self, sys_id: str) -> Optional[dict[str, Any]]:
        return self.connection.user_by_sysid(sys_id)

    def user_by_username(self, username: str) -> Optional[dict[str, Any]]:
        return self.connection.user_by_username(username)

    # ------------------------------------------------------------------ #
    # Journal
    # ------------------------------------------------------------------ #
    def _journal_entries(self, tkt: Record) -> list[QueryResult]:
        sys_id = tkt.get("sys_id")
        if not sys_id:
            return []
        entries = self.query("sys_journal_field", {"element_id": sys_id})
        return sorted(entries, key=lambda entry: self._journal_date(entry.result))

    def _journal_author(self, journal: Record) -> str:
        return journal.get("dv_sys_created_by") or "(unknown)"

    def _journal_date(self, journal: Record) -> str:
        return journal.get("dv_sys_created_on") or "(unknown)"

    def _journal_text(self, journal: Record) -> str:
        return journal.get("dv_value") or ""

    def _journal_type(self, journal: Record) -> str:
        return journal.get("dv_element") or ""

    # ------------------------------------------------------------------ #
    # Field accessors, with per-field defaults
    # ------------------------------------------------------------------ #
    def _assigned_group(self, tkt: Record) -> str:
        return tkt.get("dv_assignment_group") or "(none)"

    def _assigned_person(self, tkt: Record) -> str:
        return tkt.get("dv_assigned_to") or "(none)"

    def _caller_id(self, tkt: Record) -> str:
        return tkt.get("dv_caller_id") or tkt.get("caller_id") or ""

    def _date_resolved(self, tkt: Record) -> str:
        return tkt.get("dv_resolved_at") or ""

    def _date_submit(self, tkt: Record) -> str:
        return tkt.get("dv_opened_at") or ""

    def _date_update(self, tkt: Record) -> str:
        return tkt.get("dv_sys_updated_on") or ""

    def _description(self, tkt: Record) -> str:
        return tkt.get("description") or ""

    def _itil_state(self, tkt: Record) -> str:
        return tkt.get("u_itil_state") or ""

    def _number(self, tkt: Record) -> str:
        return tkt.get("number") or "(none)"

    def _opened_by(self, tkt: Record) -> str:
        return tkt.get("dv_opened_by") or "(unknown)"

    def _priority(self, tkt: Record) -> str:
        return tkt.get("dv_priority") or "(unknown)"

    def _requestor(self, tkt: Record) -> str:
        return tkt.get("dv_sys_created_by") or "(unknown)"

    def _resolved_by(self, tkt: Record) -> str:
        return tkt.get("dv_resolved_by") or "(none)"

    def _resolved_code(self, tkt: Record) -> str:
        return tkt.get("close_code") or "(none)"

    def _resolved_text(self, tkt: Record) -> str:
        return tkt.get("close_notes") or "(none)"

    def _stage(self, tkt: Record) -> str:
        return tkt.get("dv_stage") or tkt.get("stage") or ""

    def _state(self, tkt: Record) -> int:
        try:
            return int(tkt.get("incident_state") or 0)
        except (TypeError, ValueError):
            return 0

    def _status(self, tkt: Record) -> str:
        return tkt.get("dv_incident_state") or ""

    def _summary(self, tkt: Record) -> str:
        return tkt.get("dv_short_description") or "(none)"

    def _svctype(self, tkt: Record) -> str:
        return tkt.get("u_service_type") or "(unknown)"

    def _urgency(self, tkt: Record) -> str:
        return tkt.get("dv_urgency") or "(unknown)"
