# bondview

`bondview` inspects the tables of a key-value store. It can list tables and
their indexes, describe the fields of a table's entries, and run queries that
return rows as dictionaries. You can use it on tables in your own process, or
against a remote HTTP endpoint. It also includes two small unique-ID
generators.

```
pip install bondview
```

## Inspecting tables in process

`bondview.inspector.Inspect` takes a sequence of `TableInfo` objects. A
`TableInfo` has these parts:

- `name`: the table name.
- `entry_type`: the dataclass that the table stores.
- `indexes`: a sequence of `IndexInfo(id, name)`. The primary index is named
  `"primary"` (`PRIMARY_INDEX_NAME`).
- `run_query`: a callable invoked as
  `run_query(index, selector, predicate, limit, after)` that yields entries.
  - `selector` is `None` for the primary index. For any other index it is an
    entry built from the index selector.
  - `predicate` is `None` or a function from an entry to `bool`.
  - `limit` is 0 when no limit is set.
  - `after` is `None` or an entry built from the `after` fields.

`Inspect` provides these methods:

- `tables()` returns the table names in the order they were given.
- `indexes(table)` returns the names of the table's indexes, in the order they
  were given.
- `entry_fields(table)` maps each dataclass field to a kind name, such as
  `"int"`, `"string"`, `"float64"` or `"bool"`. A field's `metadata["kind"]`
  overrides the name, for example `field(metadata={"kind": "uint64"})`.
- `query(table, index="", index_selector=None, filter=None, limit=0, after=None, deadline=None)`
  returns a list of rows. Each row is built with `dataclasses.asdict`.
  - An empty `index` means `"primary"`.
  - Filter values are converted to the type of the field before they are
    compared, so a filter of `{"ID": 1.0}` matches an integer `ID` of 1.
  - `deadline` is a `time.monotonic()` value. Once it passes, the query fails.

`InspectError` is raised in these cases:

- the table name is empty
- the table or the index does not exist
- a selector or `after` field is unknown (`field 'X' not found`)
- a selector or `after` field cannot be converted (`field type mismatch ...`)
- the deadline has passed

```python
from dataclasses import dataclass
from bondview.inspector import Inspect, IndexInfo, TableInfo

@dataclass
class TokenBalance:
    ID: int
    AccountAddress: str

rows = [TokenBalance(1, "0xa"), TokenBalance(2, "0xb")]

def run_query(index, selector, predicate, limit, after):
    out = [r for r in rows if predicate is None or predicate(r)]
    return out[:limit] if limit else out

inspect = Inspect([TableInfo("token_balance", TokenBalance,
                             [IndexInfo(0, "primary")], run_query)])
inspect.query("token_balance", filter={"ID": 1})
# [{'ID': 1, 'AccountAddress': '0xa'}]
```

## Serving over HTTP

`bondview.handler.InspectHandler(inspect)` is a WSGI application. It routes
each request by how the path ends (`SCRIPT_NAME` + `PATH_INFO`):

| path suffix    | JSON body                                                          | reply                    |
|----------------|--------------------------------------------------------------------|--------------------------|
| `/tables`      | none                                                               | list of table names      |
| `/indexes`     | `{"table": ...}`                                                   | list of index names      |
| `/entryFields` | `{"table": ...}`                                                   | object of field → kind   |
| `/query`       | `table`, `index`, `indexSelector`, `filter`, `limit`, `after`      | list of row objects      |

How the handler responds:

- Replies are JSON with status 200.
- Any error gives status 500 with the body `{"error": "<message>"}`.
- An `Accept` header other than `application/json` gives 406 with an empty
  body. A missing `Accept` header counts as `application/json`.
- A path with no matching suffix gives 404.

`InspectHandler` does not start a server. To serve it, hand it to any WSGI
server, for example `wsgiref.simple_server.make_server`.

## Querying a remote endpoint

`bondview.client.RemoteInspect(url, headers=None, session=None)` has the same
four methods as `Inspect`. Each call is sent as a POST to the matching path
under `url`, and a trailing slash on `url` is dropped. A failed request raises
`RemoteInspectError`, which is a subclass of `InspectError`. Its
`status_code` attribute holds the HTTP status. When the server returned one,
the message includes the server's error text.

## Command line

```
bondview --url http://localhost:7777/bond tables
bondview --url http://localhost:7777/bond indexes --table token_balances
bondview --url http://localhost:7777/bond entry-fields --table token_balances
bondview --url http://localhost:7777/bond query --table token_balances --limit 10
```

Add HTTP headers with `--headers Name=Value`. The option can be repeated, and
a single value may hold a comma-separated list, for example
`--headers "Authorization=Bearer token"`.

`query` also accepts these options:

- `--index`: the index to query. The default is `primary`.
- `--index-selector`, `--filter` and `--after`: JSON objects.
- `--limit`: the maximum number of rows. The default is 30.
- `--deadline`: a duration such as `15s`, `250ms` or `1m30s`. The default is
  15 seconds.

The result is written to standard output as compact JSON with sorted keys.
Errors go to standard error as `error: ...`, and the exit status is 1.

From the command line, only `http://` and `https://` URLs are supported. If
you call `bondview.cli.main(argv, init=...)` from Python, other URLs are
passed to `init(url)`, which must return an inspector.

## Unique IDs

`bondview.ids.NumberSequence().next()` returns 64-bit integer IDs:

- The bits above the low 24 hold Unix seconds, and the low 24 bits hold a
  counter within that second.
- `timestamp(id)` and `sequence_number(id)` extract those two parts.
- If more than 2^24 IDs are requested in one second, `next()` raises
  `SequenceOverflowError`.
- The object is thread safe.
- You can pass the clock in: `NumberSequence(clock=time.time)`.

`UUIDGenerator().next()` returns a random `uuid.UUID`. Both generators satisfy
the `UniqueKeyGenerator` protocol.

## What this package does not do

`bondview` has no storage of its own. It does not open, read or write a
database file. The rows come from whatever each `TableInfo.run_query` yields,
and index selection, ordering, limits and `after` paging are left to that
callable.