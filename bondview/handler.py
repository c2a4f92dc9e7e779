"""WSGI application that serves inspection requests as JSON over HTTP."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any, Callable, Iterable, Optional

__all__ = [
    "ENTRY_FIELDS_PATH",
    "INDEXES_PATH",
    "QUERY_PATH",
    "TABLES_PATH",
    "InspectHandler",
]

TABLES_PATH = "/tables"
INDEXES_PATH = "/indexes"
ENTRY_FIELDS_PATH = "/entryFields"
QUERY_PATH = "/query"

_JSON = "application/json"
_MAX_UINT64 = (1 << 64) - 1

_Response = tuple[int, list[tuple[str, str]], bytes]


def _json_kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "null"


def _member(obj: dict[str, Any], name: str) -> Any:
    """Look a request member up by name, falling back to a case-insensitive match."""
    if name in obj:
        return obj[name]
    lowered = name.lower()
    for key, value in obj.items():
        if key.lower() == lowered:
            return value
    return None


def _string(obj: dict[str, Any], name: str) -> str:
    value = _member(obj, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"cannot unmarshal {_json_kind(value)} into field {name} of type string")
    return value


def _object(obj: dict[str, Any], name: str) -> Optional[dict[str, Any]]:
    value = _member(obj, name)
    if value is None or isinstance(value, dict):
        return value
    raise ValueError(f"cannot unmarshal {_json_kind(value)} into field {name} of type object")


def _limit(obj: dict[str, Any], name: str) -> int:
    value = _member(obj, name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _MAX_UINT64:
        raise ValueError(f"cannot unmarshal {value!r} into field {name} of type uint64")
    return value


def _read_body(environ: dict[str, Any]) -> bytes:
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    if length <= 0:
        return b""
    return environ["wsgi.input"].read(length)


def _load_object(data: bytes) -> dict[str, Any]:
    document = json.loads(data)
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ValueError(f"cannot unmarshal {_json_kind(document)} into request object")
    return document


def _dumps(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode(
        "utf-8"
    )


def _json_response(status: int, data: bytes) -> _Response:
    headers = [("Content-Type", _JSON), ("Content-Length", str(len(data)))]
    return status, headers, data


def _error_response(exc: BaseException) -> _Response:
    try:
        data = _dumps({"error": str(exc)})
    except (TypeError, ValueError):
        data = b""
    return _json_response(HTTPStatus.INTERNAL_SERVER_ERROR, data)


def _not_found() -> _Response:
    data = b"404 page not found\n"
    headers = [
        ("Content-Type", "text/plain; charset=utf-8"),
        ("X-Content-Type-Options", "nosniff"),
        ("Content-Length", str(len(data))),
    ]
    return HTTPStatus.NOT_FOUND, headers, data


class InspectHandler:
    """WSGI application routing ``.../tables``, ``.../indexes``, ``.../entryFields``
    and ``.../query`` to an inspector."""

    def __init__(self, inspect: Any) -> None:
        self._inspect = inspect
        self._routes: list[
            tuple[str, Optional[Callable[[dict[str, Any]], Any]], Callable[[Any], Any]]
        ] = [
            (TABLES_PATH, None, lambda _request: self._inspect.tables()),
            (
                INDEXES_PATH,
                lambda obj: _string(obj, "table"),
                lambda table: self._inspect.indexes(table),
            ),
            (
                ENTRY_FIELDS_PATH,
                lambda obj: _string(obj, "table"),
                lambda table: self._inspect.entry_fields(table),
            ),
            (QUERY_PATH, self._parse_query, self._run_query),
        ]

    @staticmethod
    def _parse_query(obj: dict[str, Any]) -> dict[str, Any]:
        return {
            "table": _string(obj, "table"),
            "index": _string(obj, "index"),
            "index_selector": _object(obj, "indexSelector"),
            "filter": _object(obj, "filter"),
            "limit": _limit(obj, "limit"),
            "after": _object(obj, "after"),
        }

    def _run_query(self, request: dict[str, Any]) -> Any:
        return self._inspect.query(**request)

    def _serve(
        self,
        environ: dict[str, Any],
        parse: Optional[Callable[[dict[str, Any]], Any]],
        run: Callable[[Any], Any],
    ) -> _Response:
        accept = environ.get("HTTP_ACCEPT") or _JSON

        request = None
        if parse is not None:
            try:
                request = parse(_load_object(_read_body(environ)))
            except (OSError, ValueError) as exc:
                return _error_response(exc)

        if accept != _JSON:
            return HTTPStatus.NOT_ACCEPTABLE, [("Content-Length", "0")], b""

        try:
            result = run(request)
        except Exception as exc:  # every failure is reported to the caller as JSON
            return _error_response(exc)

        try:
            data = _dumps(result)
        except (TypeError, ValueError) as exc:
            return _error_response(exc)
        return _json_response(HTTPStatus.OK, data)

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
        for suffix, parse, run in self._routes:
            if path.endswith(suffix):
                status, headers, body = self._serve(environ, parse, run)
                break
        else:
            status, headers, body = _not_found()

        phrase = HTTPStatus(status).phrase
        start_response(f"{int(status)} {phrase}", headers)
        return [body]