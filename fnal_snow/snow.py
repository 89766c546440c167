"""Working with the FNAL Service Now implementation.

:class:`Snow` wraps the configuration, the ServiceNow REST client and the
ticket-type classes in :mod:`fnal_snow.tickets`, and provides context for the
command-line tools::

    snow = Snow.init()
    for tkt in snow.tkt_by_number("INC123456"):
        print(snow.tkt_string_base(tkt), end="")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from fnal_snow.config import SnowConfig
from fnal_snow.servicenow_api import ENCODED_QUERY_KEY, QueryResult, ServiceNowClient
from fnal_snow.tickets.base import Ticket, parse_ticket_number
from fnal_snow.tickets.incident import Incident
from fnal_snow.tickets.request import Request
from fnal_snow.tickets.ritm import RITM
from fnal_snow.tickets.task import Task

LOGGER = logging.getLogger(__name__)

# Type names accepted from users, plus the table names records come back with.
TICKET_TYPES: dict[str, type[Ticket]] = {
    "incident": Incident,
    "request": Request,
    "ritm": RITM,
    "sc_req_item": RITM,
    "sc_request": Request,
    "sc_task": Task,
    "task": Task,
    "ticket": Incident,
}

NUMBER_PREFIXES: tuple[tuple[str, type[Ticket]], ...] = (
    ("INC", Incident),
    ("REQ", Request),
    ("RITM", RITM),
    ("TASK", Task),
)


class TicketTypeError(ValueError):
    """Raised for an unknown ticket type or table."""


def ticket_class(name: str) -> type[Ticket]:
    try:
        return TICKET_TYPES[name.lower()]
    except (AttributeError, KeyError):
        raise TicketTypeError(f"invalid type: {name}") from None


def ticket_class_for_number(number: str) -> Optional[type[Ticket]]:
    """Return the ticket class matching a number's prefix, if any."""
    upper = (number or "").upper()
    for prefix, cls in NUMBER_PREFIXES:
        if upper.startswith(prefix):
            return cls
    return None


def render(lines: list[str]) -> str:
    """Join report lines into a single newline-terminated string."""
    return "\n".join(lines + [""])


class Snow:
    """Connection to Service Now plus ticket, user and group helpers."""

    def __init__(
        self,
        config: Optional[SnowConfig] = None,
        config_file: Union[str, Path, None] = None,
        debug: bool = False,
        client: Optional[ServiceNowClient] = None,
    ) -> None:
        self.config = config
        self.config_file = config_file
        self.debug = debug
        self.client = client
        self._group_cache: dict[str, dict[str, Any]] = {}
        self._user_cache: dict[str, dict[str, Any]] = {}
        self._userid_cache: dict[str, dict[str, Any]] = {}
        self._name_cache: dict[str, dict[str, Any]] = {}

    # ------------------------------------------------------------------ #
    # Initialization
    # ------------------------------------------------------------------ #
    @classmethod
    def init(cls, config_file: Union[str, Path, None] = None, debug: bool = False) -> "Snow":
        """Create a Snow object from a YAML configuration file."""
        obj = cls(config_file=config_file, debug=debug)
        obj.load_yaml(config_file)
        return obj

    def load_yaml(self, path: Union[str, Path, None] = None) -> SnowConfig:
        self.config = SnowConfig.load_yaml(path)
        self.config_file = self.config.file
        return self.config

    @property
    def config_hash(self) -> dict[str, Any]:
        return self.config.config if self.config else {}

    def connect(self) -> ServiceNowClient:
        """Return the ServiceNow client, creating it from the configuration on first use."""
        if self.client is None:
            if self.config is None:
                self.load_yaml(self.config_file)
            credentials = self.config.credentials()
            LOGGER.debug("Connecting to %s as %s", credentials.url, credentials.username)
            self.client = ServiceNowClient(credentials)
        return self.client

    # ------------------------------------------------------------------ #
    # Database
    # ------------------------------------------------------------------ #
    def create(self, table: str, params: Mapping[str, Any]) -> list[QueryResult]:
        """Insert a record and return it, as re-read by sys_id."""
        LOGGER.debug("insert: %s, params=%s", table, dict(params))
        sys_id = self.connect().insert(table, params)
        if not sys_id:
            LOGGER.debug(" - failed to create")
            return []
        LOGGER.debug(" - created id %s", sys_id)
        return self.query(table, {"sys_id": sys_id})

    def query(self, table: str, params: Optional[Mapping[str, Any]] = None) -> list[QueryResult]:
        LOGGER.debug("query: %s, params=%s", table, dict(params or {}))
        results = self.connect().query(table, params)
        LOGGER.debug(" - %d results", len(results))
        return results

    def update(self, table: str, query: Mapping[str, Any], update: Mapping[str, Any]) -> list[QueryResult]:
        """Apply ``update`` to every record in ``table`` matching ``query``.

        There is no delete.
        """
        LOGGER.debug("update: %s, query=%s, update=%s", table, dict(query), dict(update))
        results = self.connect().update(table, query, update)
        LOGGER.debug(" - %d results", len(results))
        return results

    # ------------------------------------------------------------------ #
    # Ticket queries
    # ------------------------------------------------------------------ #
    def tkt_list_by_assignee(self, tkt_type: str, user: str, extra: Optional[str] = None) -> list[QueryResult]:
        return self.tkt_list_by_type(tkt_type, {"assigned_to.user_name": user}, extra)

    def tkt_list_by_type(
        self,
        tkt_type: str,
        search: Optional[Mapping[str, Any]] = None,
        extra: Optional[str] = None,
    ) -> list[QueryResult]:
        """Query the table behind ``tkt_type`` with ``search`` and an optional encoded query."""
        return self.tkt_search(self._tkt_table(tkt_type), search, extra)

    def tkt_by_number(self, number: str) -> list[QueryResult]:
        num = parse_ticket_number(number)
        if not num:
            return []
        cls = ticket_class_for_number(num)
        if cls is None:
            return []
        return cls(self).search({"number": num})

    def tkt_create(self, tkt_type: str, **ticket: Any) -> Optional[str]:
        """Create a ticket and return its number, or None on failure."""
        return ticket_class(tkt_type)(self).create(**ticket)

    def tkt_search(
        self,
        table: str,
        search: Optional[Mapping[str, Any]] = None,
        extra: Optional[str] = None,
    ) -> list[QueryResult]:
        params = dict(search or {})
        if extra:
            params[ENCODED_QUERY_KEY] = extra
        return self.query(table, params)

    # ------------------------------------------------------------------ #
    # Ticket manipulation
    # ------------------------------------------------------------------ #
    def tkt_assign(self, tkt: QueryResult, group: Optional[str] = None, user: Optional[str] = None) -> list[QueryResult]:
        obj, result = self._tkt(tkt)
        return obj.assign(result["number"], group, user)

    def tkt_compare(self, tkt1: Optional[QueryResult], tkt2: Optional[QueryResult]) -> Optional[str]:
        """Return None if both results are the same ticket, else a description of the mismatch."""
        if not tkt1:
            return f"invalid ticket: {tkt1}"
        if not tkt2:
            return f"invalid ticket: {tkt2}"
        _, result1 = self._tkt(tkt1)
        _, result2 = self._tkt(tkt2)
        num1, num2 = result1.get("number"), result2.get("number")
        if num1 == num2:
            return None
        return f"tickets do not match: {num1} vs {num2}"

    def tkt_is_resolved(self, tkt: QueryResult) -> bool:
        obj, result = self._tkt(tkt)
        return obj.is_resolved(result)

    def tkt_reopen(self, tkt: QueryResult) -> list[QueryResult]:
        obj, result = self._tkt(tkt)
        return obj.reopen(result["number"])

    def tkt_resolve(self, tkt: QueryResult, **kwargs: Any) -> list[QueryResult]:
        """Resolve the ticket; ``text``, ``close_code`` and ``user`` are passed through."""
        obj, result = self._tkt(tkt)
        return obj.resolve(result["number"], **kwargs)

    def tkt_update(self, tkt: QueryResult, **fields: Any) -> list[QueryResult]:
        obj, result = self._tkt(tkt)
        return obj.update(result["number"], **fields)

    # ------------------------------------------------------------------ #
    # Ticket lists
    # ------------------------------------------------------------------ #
    def text_tktlist_assignee(self, tkt_type: str, user: str, subtype: Optional[str] = None) -> str:
        """List tickets assigned to a user, optionally filtered by subtype."""
        cls = ticket_class(tkt_type)
        extra, text = cls.build_filter(subtype=subtype)
        text = f"== {text} assigned to user '{user}'"
        return render(cls(self).list(text, self.tkt_list_by_assignee(cls.table, user, extra)))

    def text_tktlist_group(self, tkt_type: str, group: str, subtype: Optional[str] = None) -> str:
        cls = ticket_class(tkt_type)
        extra, text = cls.build_filter(subtype=subtype)
        text = f"== {text} assigned to group '{group}'"
        results = self.tkt_list_by_type(cls.table, {"assignment_group.name": group}, extra)
        return render(cls(self).list(text, results))

    def text_tktlist_submit(self, tkt_type: str, user: str, subtype: Optional[str] = None) -> str:
        cls = ticket_class(tkt_type)
        extra, text = cls.build_filter(subtype=subtype)
        text = f"== {text} submitted by user '{user}'"
        results = self.tkt_list_by_type(cls.table, {"sys_created_by": user}, extra)
        return render(cls(self).list(text, results))

    def text_tktlist_unassigned(self, tkt_type: str, group: str) -> str:
        """List unresolved, unassigned tickets in a group."""
        cls = ticket_class(tkt_type)
        extra, text = cls.build_filter(subtype="unresolved", unassigned=True)
        text = f"== {group}: {text}"
        results = self.tkt_list_by_type(cls.table, {"assignment_group.name": group}, extra)
        return render(cls(self).list(text, results))

    def text_tktlist_unresolved(self, tkt_type: str, group: str, timestamp: Any) -> str:
        """List unresolved tickets in a group submitted before ``timestamp``."""
        cls = ticket_class(tkt_type)
        extra, text = cls.build_filter(subtype="unresolved", submit_before=timestamp)
        text = f"== {group}: {text}"
        results = self.tkt_list_by_type(cls.table, {"assignment_group.name": group}, extra)
        return render(cls(self).list(text, results))

    # ------------------------------------------------------------------ #
    # Text reports
    # ------------------------------------------------------------------ #
    def tkt_string_assignee(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_assignee(result))

    def tkt_string_base(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_base(result))

    def tkt_string_debug(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_debug(result))

    def tkt_string_description(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_description(result))

    def tkt_string_journal(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_journal(result))

    def tkt_string_primary(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_primary(result))

    def tkt_string_requestor(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_requestor(result))

    def tkt_string_resolution(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_resolution(result))

    def tkt_string_short(self, tkt: QueryResult) -> str:
        obj, result = self._tkt(tkt)
        return render(obj.string_short(result))

    # ------------------------------------------------------------------ #
    # Users and groups
    # ------------------------------------------------------------------ #
    def group_by_groupname(self, name: str) -> Optional[dict[str, Any]]:
        """Return the single group named ``name``, or None."""
        if not name:
            return None
        if name in self._group_cache:
            return self._group_cache[name]
        groups = self.query("sys_user_group", {"name": name})
        if len(groups) != 1:
            return None
        return self._populate_groupcache(groups[0].result)

    def groups_by_username(self, username: str) -> list[dict[str, Any]]:
        """Return the group records of every group ``username`` belongs to."""
        entries = []
        for membership in self.query("sys_user_grmember", {"user.user_name": username}):
            group_id = membership.result.get("group")
            for group in self.query("sys_user_group", {"sys_id": group_id}):
                entries.append(self._populate_groupcache(group.result))
        return entries

    def users_by_groupname(self, name: str) -> list[dict[str, Any]]:
        """Return the user records of every member of group ``name``."""
        entries = []
        for membership in self.query("sys_user_grmember", {"group.name": name}):
            user = self.user_by_sysid(membership.result.get("user", ""))
            if user:
                entries.append(user)
        return entries

    def user_by_name(self, name: str) -> Optional[dict[str, Any]]:
        """Return the single user whose display name is ``name``, or None."""
        if not name:
            return None
        if name in self._name_cache:
            return self._name_cache[name]
        users = self.query("sys_user", {"name": name})
        if len(users) != 1:
            return None
        self._populate_usercache(users[0].result)
        return self._name_cache.get(name)

    def user_by_sysid(self, sys_id: str) -> Optional[dict[str, Any]]:
        if not sys_id:
            return None
        if sys_id in self._userid_cache:
            return self._userid_cache[sys_id]
        users = self.query("sys_user", {"sys_id": sys_id})
        if len(users) != 1:
            return None
        self._populate_usercache(users[0].result)
        return self._userid_cache.get(sys_id)

    def user_by_username(self, username: str) -> Optional[dict[str, Any]]:
        if not username:
            return None
        if username in self._user_cache:
            return self._user_cache[username]
        users = self.query("sys_user", {"user_name": username})
        if len(users) != 1:
            return None
        self._populate_usercache(users[0].result)
        return self._user_cache.get(username)

    def user_in_group(self, username: str, group: str) -> bool:
        return any(user.get("user_name") == username for user in self.users_by_groupname(group))

    def user_in_groups(self, username: str) -> list[str]:
        """Return the names of the groups ``username`` belongs to."""
        return [group.get("name", "") for group in self.groups_by_username(username)]

    # ------------------------------------------------------------------ #
    # Internal utilities
    # ------------------------------------------------------------------ #
    def _populate_groupcache(self, result: dict[str, Any]) -> dict[str, Any]:
        self._group_cache[result.get("name", "")] = result
        return result

    def _populate_usercache(self, result: dict[str, Any]) -> dict[str, Any]:
        self._user_cache[result.get("user_name", "")] = result
        self._userid_cache[result.get("sys_id", "")] = result
        self._name_cache[result.get("name", "")] = result
        return result

    def _tkt(self, tkt: QueryResult) -> tuple[Ticket, dict[str, Any]]:
        """Return a ticket object for the result's table, and the record itself."""
        if tkt is None or not tkt.result:
            raise TicketTypeError("could not parse result")
        if not tkt.table:
            raise TicketTypeError("could not parse table")
        if tkt.table not in TICKET_TYPES:
            raise TicketTypeError(f"invalid table: {tkt.table}")
        return TICKET_TYPES[tkt.table](self), tkt.result

    def _tkt_table(self, name: str) -> str:
        """Return the table behind a ticket number, type name or table name."""
        cls = TICKET_TYPES.get(name.lower()) or ticket_class_for_number(name)
        return cls.table if cls else name
