"""Command line front end for inspecting tables locally or over HTTP."""

from __future__ import annotations

import argparse
import json
import re
import sys
import time
from typing import Any, Callable, Optional, Sequence

from bondview.client import RemoteInspect
from bondview.inspector import PRIMARY_INDEX_NAME, InspectError

__all__ = ["build_parser", "main", "parse_headers"]

DEFAULT_LIMIT = 30
DEFAULT_DEADLINE = 15.0

_USAGE_EXAMPLES = (
    "examples:\n"
    "  bondview --url .bond tables\n"
    "  bondview --url http://localhost:7777/bond tables\n"
    "  bondview --url http://localhost:7777/bond indexes --table token_balances\n"
    "  bondview --url http://localhost:7777/bond entry-fields --table token_balances"
)

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def _parse_duration(text: str) -> float:
    """Parse a duration such as ``15s``, ``1m30s`` or ``250ms`` into seconds."""
    value = text.strip()
    sign = 1.0
    if value[:1] in "+-" and value:
        sign = -1.0 if value[0] == "-" else 1.0
        value = value[1:]
    if value == "0":
        return 0.0
    if not value:
        raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(value):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(value):
        raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
    return sign * total


def _parse_limit(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid limit {text!r}") from None
    if not 0 <= value < 1 << 64:
        raise argparse.ArgumentTypeError(f"invalid limit {text!r}")
    return value


def parse_headers(values: Optional[Sequence[str]]) -> dict[str, str]:
    """Turn ``name=value`` items (comma separated lists allowed) into a header mapping."""
    headers: dict[str, str] = {}
    for value in values or ():
        for item in value.split(","):
            parts = item.split("=")
            if len(parts) != 2:
                raise ValueError(f"invalid header: {item}")
            headers[parts[0]] = parts[1]
    return headers


def _parse_object(text: Optional[str]) -> Optional[dict[str, Any]]:
    if not text:
        return None
    document = json.loads(text)
    if document is None or isinstance(document, dict):
        return document
    raise ValueError(f"expected a JSON object, got {text!r}")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with the tables, indexes, entry-fields and query commands."""
    parser = argparse.ArgumentParser(
        prog="bondview",
        description="inspects bond database.",
        epilog=_USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", required=True, help="sets bond url")
    parser.add_argument(
        "--headers", action="append", default=[], metavar="NAME=VALUE", help="sets http headers"
    )

    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    commands.add_parser("tables", help="lists table names")

    for name, text in (
        ("indexes", "lists index names for given table"),
        ("entry-fields", "lists entry fields for given table"),
    ):
        sub = commands.add_parser(name, help=text)
        sub.add_argument("--table", required=True, help="sets table")

    query = commands.add_parser("query", help="executes query")
    query.add_argument("--table", required=True, help="sets table")
    query.add_argument("--index", default=PRIMARY_INDEX_NAME, help="sets query index")
    query.add_argument("--index-selector", default="", help="sets query index selector")
    query.add_argument("--filter", default="", help="sets query filter")
    query.add_argument("--limit", type=_parse_limit, default=DEFAULT_LIMIT, help="sets query row limit")
    query.add_argument("--after", default="", help="sets query after")
    query.add_argument(
        "--deadline", type=_parse_duration, default=DEFAULT_DEADLINE, help="sets query deadline"
    )
    return parser


def _open_inspect(url: str, headers: Sequence[str], init: Optional[Callable[[str], Any]]) -> Any:
    if url.startswith("https://") or url.startswith("http://"):
        return RemoteInspect(url, parse_headers(headers))
    if init is None:
        raise InspectError("this CLI only supports http & https urls")
    try:
        return init(url)
    except Exception as exc:
        raise InspectError(f"failed to initialize Inspect - {exc}") from exc


def _run(args: argparse.Namespace, inspect: Any) -> Any:
    if args.command == "tables":
        return inspect.tables()
    if args.command == "indexes":
        return inspect.indexes(args.table)
    if args.command == "entry-fields":
        return inspect.entry_fields(args.table)

    index_selector = _parse_object(args.index_selector)
    filter_ = _parse_object(args.filter)
    after = _parse_object(args.after)
    return inspect.query(
        table=args.table,
        index=args.index,
        index_selector=index_selector,
        filter=filter_,
        limit=args.limit,
        after=after,
        deadline=time.monotonic() + args.deadline,
    )


def main(argv: Optional[Sequence[str]] = None, init: Optional[Callable[[str], Any]] = None) -> int:
    """Run the command line; ``init`` opens an inspector for a non-HTTP url."""
    args = build_parser().parse_args(argv)
    try:
        inspect = _open_inspect(args.url, args.headers, init)
        result = _run(args, inspect)
        output = json.dumps(result, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    except (InspectError, ValueError, TypeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    sys.stdout.write(output)
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())