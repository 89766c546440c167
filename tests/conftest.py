"""Shared fixtures: an in-memory stand-in for the ServiceNow Table API."""

import copy
import time

import pytest

from fnal_snow.servicenow_api import ENCODED_QUERY_KEY, QueryResult
from fnal_snow.snow import Snow

# Reference fields and the tables they point at, for dot-walked queries.
REFERENCE_TABLES = {
    "assigned_to": "sys_user",
    "assignment_group": "sys_user_group",
    "caller_id": "sys_user",
    "group": "sys_user_group",
    "user": "sys_user",
}

NUMBER_PREFIXES = {
    "incident": ("INC", 12),
    "sc_request": ("REQ", 12),
    "sc_req_item": ("RITM", 7),
    "sc_task": ("TASK", 7),
}

TABLES = {
    "sys_user": [
        {
            "sys_id": "u1",
            "user_name": "tskirvin",
            "dv_user_name": "tskirvin",
            "name": "Tim Skirvin",
            "dv_name": "Tim Skirvin",
            "email": "tskirvin@fnal.gov",
            "dv_email": "tskirvin@fnal.gov",
        },
        {
            "sys_id": "u2",
            "user_name": "jdoe",
            "dv_user_name": "jdoe",
            "name": "Jane Doe",
            "dv_name": "Jane Doe",
            "email": "jdoe@fnal.gov",
            "dv_email": "jdoe@fnal.gov",
        },
    ],
    "sys_user_group": [
        {"sys_id": "g1", "name": "Storage Service", "dv_name": "Storage Service"},
        {"sys_id": "g2", "name": "Help Desk", "dv_name": "Help Desk"},
    ],
    "sys_user_grmember": [
        {"sys_id": "m1", "user": "u1", "group": "g1"},
        {"sys_id": "m2", "user": "u2", "group": "g2"},
    ],
    "incident": [
        {
            "sys_id": "i1",
            "number": "INC000000123456",
            "short_description": "Tape library offline",
            "dv_short_description": "Tape library offline",
            "description": "The tape library is not responding.",
            "incident_state": "2",
            "dv_incident_state": "Work in Progress",
            "assigned_to": "u1",
            "dv_assigned_to": "Tim Skirvin",
            "assignment_group": "g1",
            "dv_assignment_group": "Storage Service",
            "caller_id": "u2",
            "dv_caller_id": "Jane Doe",
            "sys_created_by": "jdoe",
            "dv_sys_created_by": "jdoe",
            "dv_opened_at": "2014-07-25 10:00:00",
            "dv_sys_updated_on": "2014-07-25 12:30:00",
            "dv_urgency": "2 - Medium",
            "dv_priority": "3 - Moderate",
            "u_service_type": "Storage",
        },
        {
            "sys_id": "i2",
            "number": "INC000000123457",
            "short_description": "Quota request",
            "dv_short_description": "Quota request",
            "incident_state": "6",
            "dv_incident_state": "Resolved",
            "assigned_to": "",
            "dv_assigned_to": "",
            "assignment_group": "g1",
            "dv_assignment_group": "Storage Service",
            "caller_id": "u2",
            "dv_caller_id": "Jane Doe",
            "sys_created_by": "jdoe",
            "dv_sys_created_by": "jdoe",
            "dv_opened_at": "2014-07-20 08:00:00",
            "dv_sys_updated_on": "2014-07-26 09:00:00",
            "close_code": "Solved",
            "close_notes": "Raised the quota.",
            "dv_resolved_by": "Tim Skirvin",
            "dv_resolved_at": "2014-07-26 09:00:00",
        },
    ],
    "sc_request": [
        {
            "sys_id": "r1",
            "number": "REQ000000001234",
            "dv_short_description": "New workstation",
            "stage": "in_process",
            "dv_stage": "In Process",
            "u_itil_state": "Open",
            "opened_by": "u1",
            "requested_for": "u2",
            "u_request_type": "Hardware",
            "dv_assignment_group": "Help Desk",
            "dv_opened_at": "2014-07-21 09:00:00",
            "dv_sys_updated_on": "2014-07-22 09:00:00",
        },
    ],
    "sc_req_item": [
        {
            "sys_id": "ri1",
            "number": "RITM0001234",
            "request": "r1",
            "dv_request": "REQ000000001234",
            "dv_short_description": "Desktop PC",
            "stage": "fulfillment",
            "dv_u_itil_state": "Open",
            "dv_approval": "Approved",
            "dv_assignment_group": "Help Desk",
            "dv_sys_created_by": "jdoe",
            "dv_opened_by": "Tim Skirvin",
            "dv_opened_at": "2014-07-21 09:05:00",
            "dv_sys_updated_on": "2014-07-22 09:05:00",
        },
    ],
    "sc_task": [
        {
            "sys_id": "t1",
            "number": "TASK0005678",
            "dv_short_description": "Image the desktop",
            "state": "1",
            "dv_state": "Open",
            "dv_assignment_group": "Help Desk",
        },
    ],
    "sys_journal_field": [
        {
            "sys_id": "j2",
            "element_id": "i1",
            "dv_element": "work_notes",
            "dv_value": "Called the vendor.",
            "dv_sys_created_by": "tskirvin",
            "dv_sys_created_on": "2014-07-25 11:00:00",
        },
        {
            "sys_id": "j1",
            "element_id": "i1",
            "dv_element": "comments",
            "dv_value": "Taking a first look.",
            "dv_sys_created_by": "tskirvin",
            "dv_sys_created_on": "2014-07-25 10:05:00",
        },
    ],
}


class FakeServiceNow:
    """Implements the ServiceNowClient table operations over in-memory tables.

    Plain keys match by equality, ``ref.field`` keys follow the reference, and
    encoded queries are recorded but not evaluated.
    """

    def __init__(self, tables):
        self.tables = tables
        self.calls = []
        self.fail_insert = False
        self._counter = 900000

    def query(self, table, params=None, *, limit=None):
        params = dict(params or {})
        self.calls.append(("query", table, params))
        return [
            QueryResult(table=table, result=dict(record))
            for record in self.tables.get(table, [])
            if self._matches(record, params)
        ]

    def insert(self, table, values):
        self.calls.append(("insert", table, dict(values)))
        if self.fail_insert:
            return None
        self._counter += 1
        record = {"sys_id": f"new{self._counter}", **values}
        if table in NUMBER_PREFIXES:
            prefix, width = NUMBER_PREFIXES[table]
            record["number"] = f"{prefix}{self._counter:0{width}d}"
        self.tables.setdefault(table, []).append(record)
        return record["sys_id"]

    def update(self, table, params, values):
        self.calls.append(("update", table, dict(params), dict(values)))
        updated = []
        for record in self.tables.get(table, []):
            if self._matches(record, params):
                record.update(values)
                updated.append(QueryResult(table=table, result=dict(record)))
        return updated

    def calls_for(self, kind, table=None):
        return [call for call in self.calls if call[0] == kind and (table is None or call[1] == table)]

    def _matches(self, record, params):
        for key, value in params.items():
            if key == ENCODED_QUERY_KEY:
                continue
            if "." in key:
                ref, field = key.split(".", 1)
                target = self._lookup(REFERENCE_TABLES.get(ref), record.get(ref))
                if target is None or target.get(field) != value:
                    return False
            elif record.get(key) != value:
                return False
        return True

    def _lookup(self, table, sys_id):
        for record in self.tables.get(table, []):
            if record.get("sys_id") == sys_id:
                return record
        return None


@pytest.fixture(autouse=True)
def utc_timezone(monkeypatch):
    """Run every test with the local timezone set to UTC."""
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def fake_client():
    return FakeServiceNow(copy.deepcopy(TABLES))


@pytest.fixture
def snow(fake_client):
    return Snow(client=fake_client)


@pytest.fixture
def record(fake_client):
    """Return a function fetching a record by table and number."""

    def _record(table, number):
        for item in fake_client.tables[table]:
            if item.get("number") == number:
                return item
        raise KeyError(number)

    return _record
