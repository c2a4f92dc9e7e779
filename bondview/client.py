"""HTTP client that talks to an inspection handler and behaves like an inspector."""

from __future__ import annotations

import json
import time
from typing import Any, Mapping, Optional

import requests

from bondview.handler import ENTRY_FIELDS_PATH, INDEXES_PATH, QUERY_PATH, TABLES_PATH
from bondview.inspector import InspectError

__all__ = ["RemoteInspect", "RemoteInspectError"]

_NO_BODY = object()


class RemoteInspectError(InspectError):
    """Raised when a remote inspection request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_reason(content: bytes) -> Optional[str]:
    """Return the server's error text, or None when the body is not an error document."""
    try:
        document = json.loads(content)
    except ValueError:
        return None
    if document is None:
        return ""
    if not isinstance(document, dict):
        return None
    reason = document.get("error")
    if reason is None:
        return ""
    if not isinstance(reason, str):
        return None
    return reason


class RemoteInspect:
    """Inspector whose answers come from a remote inspection handler."""

    def __init__(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if url.endswith("/"):
            url = url[:-1]
        self.base_url = url
        self.headers = dict(headers or {})
        self.tables_url = url + TABLES_PATH
        self.indexes_url = url + INDEXES_PATH
        self.entry_fields_url = url + ENTRY_FIELDS_PATH
        self.query_url = url + QUERY_PATH
        self._session = session or requests.Session()

    def _post(self, url: str, payload: Any = _NO_BODY, deadline: Optional[float] = None) -> Any:
        timeout = None
        if deadline is not None:
            timeout = deadline - time.monotonic()
            if timeout <= 0:
                raise RemoteInspectError("context done: deadline exceeded")

        headers = {"Accept": "application/json"}
        data = None
        if payload is not _NO_BODY:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload).encode("utf-8")
        headers.update(self.headers)

        try:
            response = self._session.post(url, headers=headers, data=data, timeout=timeout)
        except requests.RequestException as exc:
            raise RemoteInspectError(str(exc)) from exc

        if response.status_code >= 400:
            status = f"{response.status_code} {response.reason or ''}".strip()
            reason = _error_reason(response.content)
            if reason is None:
                raise RemoteInspectError(
                    f"request failed with status({status})", response.status_code
                )
            raise RemoteInspectError(
                f"request failed with status({status}), reason: {reason}", response.status_code
            )

        try:
            return json.loads(response.content)
        except ValueError as exc:
            raise RemoteInspectError(f"invalid response: {exc}") from exc

    @staticmethod
    def _string_list(document: Any) -> list[str]:
        if document is None:
            return []
        if not isinstance(document, list) or not all(isinstance(v, str) for v in document):
            raise RemoteInspectError("invalid response: expected a list of strings")
        return document

    def tables(self) -> list[str]:
        """Return the table names known to the remote side."""
        return self._string_list(self._post(self.tables_url))

    def indexes(self, table: str) -> list[str]:
        """Return the index names of a remote table."""
        return self._string_list(self._post(self.indexes_url, {"table": table}))

    def entry_fields(self, table: str) -> dict[str, str]:
        """Return the entry fields of a remote table with their kinds."""
        document = self._post(self.entry_fields_url, {"table": table})
        if document is None:
            return {}
        if not isinstance(document, dict) or not all(
            isinstance(v, str) for v in document.values()
        ):
            raise RemoteInspectError("invalid response: expected an object of strings")
        return document

    def query(
        self,
        table: str,
        index: str = "",
        index_selector: Optional[Mapping[str, Any]] = None,
        filter: Optional[Mapping[str, Any]] = None,
        limit: int = 0,
        after: Optional[Mapping[str, Any]] = None,
        deadline: Optional[float] = None,
    ) -> list[dict[str, Any]]:
        """Run a query remotely; ``deadline`` is a ``time.monotonic()`` value."""
        payload = {
            "table": table,
            "index": index,
            "indexSelector": None if index_selector is None else dict(index_selector),
            "filter": None if filter is None else dict(filter),
            "limit": limit,
            "after": None if after is None else dict(after),
        }
        document = self._post(self.query_url, payload, deadline)
        if document is None:
            return []
        if not isinstance(document, list) or not all(isinstance(r, dict) for r in document):
            raise RemoteInspectError("invalid response: expected a list of objects")
        return document