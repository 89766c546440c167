"""Lightweight ServiceNow Table API client used by the SNOW ticket tools."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

import requests
from requests import Response, Session

LOGGER = logging.getLogger(__name__)

ENCODED_QUERY_KEY = "__encoded_query"


class ServiceNowError(RuntimeError):
    """Raised when the ServiceNow API returns a failure."""


@dataclass(slots=True)
class ServiceNowCredentials:
    """Container for ServiceNow connection settings."""

    url: str
    username: str
    password: str
    verify_ssl: bool = True
    timeout: int = 30

    @property
    def instance_name(self) -> str:
        parsed = urlparse(self.url)
        host = parsed.hostname or self.url
        return host.split(".")[0]


@dataclass(slots=True)
class QueryResult:
    """A single record together with the table it was read from."""

    table: str
    result: dict[str, Any] = field(default_factory=dict)


def encode_query(params: Optional[Mapping[str, Any]]) -> str:
    """Build a ServiceNow encoded query from a mapping of field/value pairs.

    The ``__encoded_query`` key is passed through verbatim and appended after
    the plain equality terms.
    """
    if not params:
        return ""
    terms = [f"{key}={value}" for key, value in params.items() if key != ENCODED_QUERY_KEY]
    extra = params.get(ENCODED_QUERY_KEY)
    if extra:
        terms.append(str(extra))
    return "^".join(terms)


def flatten_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a ``sysparm_display_value=all`` record.

    Each field ``name`` becomes ``name`` (the raw value) and ``dv_name`` (the
    display value), matching the shape of a Glide record.
    """
    flat: dict[str, Any] = {}
    for name, value in record.items():
        if isinstance(value, Mapping):
            flat[name] = value.get("value") or ""
            flat[f"dv_{name}"] = value.get("display_value") or ""
        else:
            flat[name] = "" if value is None else value
            flat.setdefault(f"dv_{name}", flat[name])
    return flat


class ServiceNowClient:
    """Minimal REST client for ServiceNow table endpoints."""

    def __init__(self, credentials: ServiceNowCredentials, session: Optional[Session] = None) -> None:
        self.credentials = credentials
        self.session = session or requests.Session()

    # ------------------------------------------------------------------ #
    # Table operations
    # ------------------------------------------------------------------ #
    def get_record(self, table: str, sys_id: str) -> dict[str, Any]:
        """Retrieve a single record from a table.

        Args:
            table: The name of the ServiceNow table.
            sys_id: The sys_id of the record to retrieve.

        Returns:
            The flattened record.

        Raises:
            ServiceNowError: If the ServiceNow API returns a 4xx or 5xx status code.
        """
        response = self._request(
            "GET",
            f"/api/now/table/{table}/{sys_id}",
            params={"sysparm_display_value": "all"},
        )
        return flatten_record(self._extract_result(response))

    def query(
        self,
        table: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        limit: Optional[int] = None,
    ) -> list[QueryResult]:
        """Query a table, returning one QueryResult per matching record."""
        query_params: dict[str, Any] = {
            "sysparm_query": encode_query(params),
            "sysparm_display_value": "all",
        }
        if limit:
            query_params["sysparm_limit"] = limit
        response = self._request("GET", f"/api/now/table/{table}", params=query_params)
        payload = response.json()
        records = payload.get("result", [])
        LOGGER.debug("query %s: %d results", table, len(records))
        return [QueryResult(table=table, result=flatten_record(record)) for record in records]

    def insert(self, table: str, values: Mapping[str, Any]) -> Optional[str]:
        """Insert a record and return its sys_id (or None if none came back)."""
        response = self._request(
            "POST",
            f"/api/now/table/{table}",
            params={"sysparm_display_value": "all"},
            json_payload=dict(values),
        )
        record = flatten_record(self._extract_result(response))
        return record.get("sys_id") or None

    def update(
        self,
        table: str,
        params: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> list[QueryResult]:
        """Apply ``values`` to every record in ``table`` matching ``params``."""
        updated = []
        for match in self.query(table, params):
            sys_id = match.result.get("sys_id")
            if not sys_id:
                LOGGER.warning("Skipping %s record without a sys_id", table)
                continue
            response = self._request(
                "PATCH",
                f"/api/now/table/{table}/{sys_id}",
                params={"sysparm_display_value": "all"},
                json_payload=dict(values),
            )
            record = flatten_record(self._extract_result(response))
            updated.append(QueryResult(table=table, result=record))
        return updated

    # ------------------------------------------------------------------ #
    # Internal utilities
    # ------------------------------------------------------------------ #
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json_payload: Optional[Mapping[str, Any]] = None,
    ) -> Response:
        url = f"{self.credentials.url}{path}"
        LOGGER.debug("ServiceNow request %s %s params=%s body=%s", method, url, params, json_payload)
        try:
            response = self.session.request(
                method,
                url,
                auth=(self.credentials.username, self.credentials.password),
                params=params,
                json=json_payload,
                headers={"Accept": "application/json"},
                timeout=self.credentials.timeout,
                verify=self.credentials.verify_ssl,
            )
        except requests.RequestException as exc:
            raise ServiceNowError(f"ServiceNow request failed: {exc}") from exc
        if response.status_code >= 400:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            raise ServiceNowError(f"ServiceNow request failed ({response.status_code}): {detail}")
        return response

    @staticmethod
    def _extract_result(response: Response) -> dict[str, Any]:
        payload = response.json()
        result = payload.get("result")
        if result is None:
            raise ServiceNowError("ServiceNow response missing 'result'")
        return result
