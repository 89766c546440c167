"""Unit tests for ticket numbers, filters and text formatting."""

import time

import pytest

from fnal_snow.tickets.base import (
    WRAP_COLUMNS,
    format_date,
    format_text,
    format_text_field,
    parse_ticket_number,
    shorten_number,
    to_epoch,
)
from fnal_snow.tickets.incident import Incident
from fnal_snow.tickets.request import Request
from fnal_snow.tickets.ritm import RITM
from fnal_snow.tickets.task import Task

# 2014-07-25 10:00:00 UTC
EPOCH = 1406282400


class TestParseTicketNumber:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("INC123456", "INC000000123456"),
            ("inc123456", "INC000000123456"),
            ("INC000000123456", "INC000000123456"),
            ("REQ1234", "REQ000000001234"),
            ("RITM1234", "RITM0001234"),
            ("TASK5678", "TASK0005678"),
            ("123456", "INC000000123456"),
            (" 42 ", "INC000000000042"),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_ticket_number(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "CHG123", "INC", "INC12a", "hello"])
    def test_invalid(self, raw):
        assert parse_ticket_number(raw) is None

    def test_shorten(self):
        assert shorten_number("INC000000123456") == "INC123456"
        assert shorten_number("RITM0001234") == "RITM1234"
        assert shorten_number("TKT000123") == "TKT123"
        assert shorten_number("CHG000123") == "CHG000123"


class TestDates:
    def test_to_epoch(self):
        assert to_epoch(EPOCH) == EPOCH
        assert to_epoch(str(EPOCH)) == EPOCH
        assert to_epoch("2014-07-25 10:00:00") == EPOCH
        assert to_epoch("2014-07-25 10:00") == EPOCH
        assert to_epoch("2014-07-25") == EPOCH - 10 * 3600

    def test_to_epoch_unparseable(self):
        assert to_epoch("") is None
        assert to_epoch(None) is None
        assert to_epoch("next tuesday") is None
        assert to_epoch("1234") is None
        assert to_epoch("20141399") is None

    def test_to_epoch_compact_date(self):
        assert to_epoch("20140725") == EPOCH - 10 * 3600
        assert to_epoch("140628240") == 140628240

    def test_to_epoch_gmt_zone(self, monkeypatch):
        monkeypatch.setenv("TZ", "CST6CDT,M3.2.0,M11.1.0")
        time.tzset()
        assert to_epoch("2014-07-25 10:00:00", "GMT") == EPOCH
        assert to_epoch("2014-07-25 10:00:00") == EPOCH + 5 * 3600

    def test_format_date(self):
        assert format_date(EPOCH) == "2014-07-25 10:00:00 UTC"
        assert format_date("2014-07-25 10:00:00") == "2014-07-25 10:00:00 UTC"

    def test_format_date_unknown(self):
        assert format_date("") == "(unknown)           "
        assert format_date("whenever") == "(unknown)           "


class TestFormatText:
    def test_field_alignment(self):
        lines = format_text_field([("Number", "INC000000123456"), ("Summary", "")])
        assert lines == [
            "  " + "Number:".ljust(20) + " INC000000123456",
            "  " + "Summary:".ljust(20) + " *unknown*",
        ]

    def test_field_wide_label(self):
        lines = format_text_field([("A very long field label", "x"), ("B", "y")], minwidth=5, prefix="")
        assert lines == ["A very long field label: x", "B:".ljust(24) + " y"]

    def test_field_wraps_long_values(self):
        value = " ".join(["word"] * 30)
        lines = format_text_field([("Summary", value)])
        assert len(lines) > 1
        assert all(len(line) <= WRAP_COLUMNS for line in lines)
        assert all(line.startswith(" " * 23) for line in lines[1:])

    def test_text_keeps_paragraphs(self):
        assert format_text("first\n\nsecond", prefix="  ") == ["  first", "", "  second"]

    def test_text_empty(self):
        assert format_text("", prefix="  ") == [""]
        assert format_text(None) == [""]

    def test_text_wraps(self):
        lines = format_text("x" * 10 + " " + "y" * 70, prefix="    ")
        assert lines == ["    " + "x" * 10, "    " + "y" * 70]


class TestBuildFilter:
    @pytest.mark.parametrize(
        "cls, subtype, expected",
        [
            (Incident, "open", ("incident_state<4", "Open incidents")),
            (Incident, "closed", ("incident_state>=4", "Closed incidents")),
            (Incident, "unresolved", ("incident_state<7", "Unresolved incidents")),
            (Incident, "cancelled", ("incident_state=8", "Cancelled incidents")),
            (Incident, None, ("", "All incidents")),
            (Incident, "bogus", ("", "All incidents")),
            (Task, "open", ("state<3", "Open tasks")),
            (Task, "closed", ("state>=3", "Closed tasks")),
            (Task, "unresolved", ("state!=3", "Unresolved tasks")),
            (Task, "cancelled", ("state=4", "Cancelled tasks")),
            (RITM, "open", ("stageNOT INcomplete,Request Cancelled", "Open ritms")),
            (RITM, "closed", ("stageINcomplete,Request Cancelled", "Closed ritms")),
            (RITM, "unresolved", ("stage!=complete", "Unresolved ritms")),
            (RITM, "cancelled", ("stage=Request Cancelled", "Cancelled ritms")),
            (Request, "open", ("stageINrequested,in_process", "Open requests")),
            (Request, "closed", ("stageSTARTSWITHclosed", "Closed requests")),
            (Request, "unresolved", ("stage!=closed_complete", "Unresolved requests")),
            (Request, "cancelled", ("stage=closed_cancelled", "Cancelled requests")),
        ],
    )
    def test_subtypes(self, cls, subtype, expected):
        assert cls.build_filter(subtype=subtype) == expected

    def test_unassigned(self):
        assert Incident.build_filter(subtype="unresolved", unassigned=True) == (
            "incident_state<7^assigned_toISEMPTY",
            "Unassigned Unresolved incidents",
        )

    def test_submit_before(self):
        assert Incident.build_filter(subtype="unresolved", submit_before=EPOCH) == (
            "incident_state<7^opened_at<2014-07-25 10:00:00",
            "Unresolved incidents submitted before 2014-07-25 10:00:00 UTC",
        )

    def test_submit_before_queries_in_utc(self, monkeypatch):
        monkeypatch.setenv("TZ", "CST6CDT,M3.2.0,M11.1.0")
        time.tzset()
        extra, text = Incident.build_filter(submit_before=EPOCH)
        assert extra == "opened_at<2014-07-25 10:00:00"
        assert text == "All incidents submitted before 2014-07-25 05:00:00 CDT"

    def test_submit_before_invalid(self):
        with pytest.raises(ValueError, match="submit_before"):
            Incident.build_filter(submit_before="someday")
