"""HTTP client CRUD adapter.

Maps each operation to one request against a REST server:

- ``GET    {base}/{table}/{id}``        find
- ``POST   {base}/{table}``             create
- ``PATCH  {base}/{table}/{id}``        update
- ``DELETE {base}/{table}/{id}``        remove
- ``GET    {base}/{table}?{query}``     list

List queries are sent as bracketed parameters (``age[$gte]=15``). A 404
raises ``RecordNotFoundError``; any other non-2xx status, connection
failure or undecodable body raises ``TransportError``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import msgspec
import requests

from crudkit.core import CRUD, Record, validate_name
from crudkit.exceptions import QueryError, RecordNotFoundError, TransportError
from crudkit.query import Query, flatten_query, parse_query

logger = logging.getLogger(__name__)

_ERROR_TEXT_LIMIT = 500


class HttpCRUD(CRUD):
    """CRUD adapter talking to a REST server."""

    def __init__(
        self,
        base_url: str = "",
        headers: Mapping[str, str] | None = None,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.session = session or requests.Session()
        self._owns_session = session is None
        self.timeout = timeout
        self.encoder = msgspec.json.Encoder()

    def _url(self, table: str, id: str | None = None) -> str:
        url = f"{self.base_url}/{quote(validate_name('table', table), safe='')}"
        if id is not None:
            url += f"/{quote(validate_name('id', id), safe='')}"
        return url

    def _request(
        self,
        method: str,
        url: str,
        table: str,
        id: str | None = None,
        body: Mapping[str, Any] | None = None,
        params: list[tuple[str, str]] | None = None,
    ) -> Any:
        headers = dict(self.headers)
        data = None
        if body is not None:
            headers = {"Content-Type": "application/json", **headers}
            data = self.encoder.encode(dict(body))

        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                data=data,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(url, str(e)) from e

        if response.status_code == 404 and id is not None:
            raise RecordNotFoundError(table, id)
        if response.status_code // 100 != 2:
            raise TransportError(
                url,
                _error_message(response),
                status_code=response.status_code,
                response_text=response.text,
            )

        try:
            return msgspec.json.decode(response.content)
        except msgspec.DecodeError as e:
            raise TransportError(
                url,
                f"Invalid JSON response: {e}",
                status_code=response.status_code,
                response_text=response.text,
            ) from e

    def _expect_record(self, payload: Any, url: str) -> Record:
        if not isinstance(payload, dict):
            raise TransportError(
                url, f"Expected a JSON object, got {type(payload).__name__}"
            )
        return payload

    def find(self, *, table: str, id: str) -> Record:
        url = self._url(table, id)
        return self._expect_record(self._request("GET", url, table, id), url)

    def create(self, *, table: str, data: Mapping[str, Any]) -> Record:
        url = self._url(table)
        return self._expect_record(self._request("POST", url, table, body=data), url)

    def update(self, *, table: str, id: str, data: Mapping[str, Any]) -> Record:
        url = self._url(table, id)
        return self._expect_record(
            self._request("PATCH", url, table, id, body=data), url
        )

    def remove(self, *, table: str, id: str) -> Record:
        url = self._url(table, id)
        return self._expect_record(self._request("DELETE", url, table, id), url)

    def list(
        self, *, table: str, query: Mapping[str, Any] | Query | None = None
    ) -> list[Record]:
        if isinstance(query, Query):
            raise QueryError("HTTP adapter requires a query mapping")
        # Reject malformed queries before they reach the server
        parse_query(query)

        url = self._url(table)
        payload = self._request("GET", url, table, params=flatten_query(query))
        if not isinstance(payload, list):
            raise TransportError(
                url, f"Expected a JSON array, got {type(payload).__name__}"
            )
        return payload

    def close(self) -> None:
        """Close the HTTP session if this adapter created it."""
        if self._owns_session:
            self.session.close()


def _error_message(response: requests.Response) -> str:
    """Pull a useful error message out of a response, falling back to text."""
    message = response.text
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error") or message
    return str(message)[:_ERROR_TEXT_LIMIT]
