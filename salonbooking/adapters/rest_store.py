"""
HTTP record store speaking the PostgREST conventions used by Supabase.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from ..domain.exceptions import DuplicateRecordError, RepositoryError
from .record_store import Record

logger = logging.getLogger(__name__)

# PostgreSQL error code for unique_violation
UNIQUE_VIOLATION = "23505"


class RestRecordStore:
    """
    Client for a PostgREST endpoint (``/rest/v1/<table>``).

    Every request carries a bounded timeout; a timeout or connection failure
    is raised as a retryable ``RepositoryError`` rather than being mistaken
    for an empty result.
    """

    REST_PATH = "/rest/v1"

    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 10.0):
        """
        Initialize the REST store.

        Args:
            base_url: Project URL, e.g. ``https://<project>.supabase.co``
            api_key: API key sent as ``apikey`` and bearer token
            timeout_seconds: Timeout applied to every HTTP call
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}{self.REST_PATH}/{table}"

    @staticmethod
    def _filter_params(filters: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        return {column: f"eq.{value}" for column, value in (filters or {}).items()}

    def select(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> List[Record]:
        params = {"select": "*", **self._filter_params(filters)}
        response = self._request("get", table, params=params)
        return self._rows(response, table)

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        response = self._request(
            "post",
            table,
            json=dict(record),
            headers={"Prefer": "return=representation"},
        )
        rows = self._rows(response, table)
        if not rows:
            raise RepositoryError(f"Insert into {table} returned no row")
        return rows[0]

    def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> List[Record]:
        response = self._request(
            "patch",
            table,
            params=self._filter_params(filters),
            json=dict(changes),
            headers={"Prefer": "return=representation"},
        )
        return self._rows(response, table)

    def _request(self, method: str, table: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> requests.Response:
        url = self._table_url(table)
        send = getattr(requests, method)

        try:
            response = send(
                url,
                headers={**self.headers, **(headers or {})},
                timeout=self.timeout_seconds,
                **kwargs,
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise RepositoryError(f"Store unreachable ({method.upper()} {table}): {e}", retryable=True) from e
        except requests.exceptions.RequestException as e:
            raise RepositoryError(f"Store request failed ({method.upper()} {table}): {e}") from e

        if self._is_unique_violation(response):
            raise DuplicateRecordError(f"Duplicate record in {table}: {response.text}")

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise RepositoryError(
                f"Store query failed ({method.upper()} {table}): {e}",
                retryable=response.status_code >= 500,
            ) from e

        return response

    @staticmethod
    def _is_unique_violation(response: requests.Response) -> bool:
        """
        A 23505 error code marks a duplicate key. A bare 409 without a code
        is treated the same; a 409 carrying another code (e.g. 23503, a
        foreign key violation) is not.
        """
        if response.status_code < 400:
            return False
        try:
            body = response.json()
        except ValueError:
            body = None
        code = body.get("code") if isinstance(body, dict) else None
        if code:
            return code == UNIQUE_VIOLATION
        return response.status_code == 409

    @staticmethod
    def _rows(response: requests.Response, table: str) -> List[Record]:
        try:
            data = response.json()
        except ValueError as e:
            raise RepositoryError(f"Invalid JSON from store for {table}: {e}") from e

        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise RepositoryError(f"Unexpected response shape from store for {table}")
        return data
