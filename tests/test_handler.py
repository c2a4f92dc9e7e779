import io
import json
from dataclasses import dataclass, field
from wsgiref.util import setup_testing_defaults

import pytest

from bondview.handler import InspectHandler
from bondview.inspector import IndexInfo, Inspect, TableInfo


@dataclass
class TokenBalance:
    ID: int = field(default=0, metadata={"kind": "uint64"})
    AccountID: int = field(default=0, metadata={"kind": "uint32"})
    ContractAddress: str = ""
    AccountAddress: str = ""
    TokenID: int = field(default=0, metadata={"kind": "uint32"})
    Balance: int = field(default=0, metadata={"kind": "uint64"})


_KEYS = {
    "primary": lambda e: (),
    "account_address_idx": lambda e: (e.AccountAddress,),
    "account_and_contract_address_idx": lambda e: (e.AccountAddress, e.ContractAddress),
}


def make_table(store):
    def run_query(index, selector, predicate, limit, after):
        key = _KEYS[index.name]
        rows = sorted(store.values(), key=lambda e: key(e) + (e.ID,))
        if selector is not None:
            rows = [r for r in rows if key(r) == key(selector)]
        if after is not None:
            rows = [r for r in rows if key(r) + (r.ID,) > key(after) + (after.ID,)]
        if predicate is not None:
            rows = [r for r in rows if predicate(r)]
        if limit:
            rows = rows[:limit]
        return rows

    return TableInfo(
        name="token_balance",
        entry_type=TokenBalance,
        indexes=[
            IndexInfo(0, "primary"),
            IndexInfo(1, "account_address_idx"),
            IndexInfo(2, "account_and_contract_address_idx"),
        ],
        run_query=run_query,
    )


@pytest.fixture
def store():
    return {}


@pytest.fixture
def app(store):
    return InspectHandler(Inspect([make_table(store)]))


@pytest.fixture
def filled(store):
    store[1] = TokenBalance(1, 1, "0xc", "0xa", 10, 501)
    store[2] = TokenBalance(2, 1, "0xc", "0xa", 5, 1)
    return store


def call(app, path, body=b"", accept=None):
    if isinstance(body, str):
        body = body.encode()
    environ = {}
    setup_testing_defaults(environ)
    environ.update(
        {
            "REQUEST_METHOD": "POST",
            "SCRIPT_NAME": "",
            "PATH_INFO": path,
            "CONTENT_LENGTH": str(len(body)),
            "wsgi.input": io.BytesIO(body),
        }
    )
    if accept is not None:
        environ["HTTP_ACCEPT"] = accept
    captured = {}

    def start_response(status, headers, exc_info=None):
        captured["status"] = status
        captured["headers"] = dict(headers)

    data = b"".join(app(environ, start_response))
    return int(captured["status"].split()[0]), data, captured["headers"]


ROW1 = {
    "ID": 1,
    "AccountID": 1,
    "ContractAddress": "0xc",
    "AccountAddress": "0xa",
    "TokenID": 10,
    "Balance": 501,
}
ROW2 = {
    "ID": 2,
    "AccountID": 1,
    "ContractAddress": "0xc",
    "AccountAddress": "0xa",
    "TokenID": 5,
    "Balance": 1,
}


def test_tables(app):
    status, data, _ = call(app, "/bond/tables", "")
    assert status == 200
    assert data == b'["token_balance"]'


def test_indexes(app):
    status, data, _ = call(app, "/bond/indexes", '{"table": "token_balance"}')
    assert status == 200
    assert data == b'["primary","account_address_idx","account_and_contract_address_idx"]'


def test_indexes_table_not_found(app):
    status, data, _ = call(app, "/bond/indexes", '{"table": "no_such_table"}')
    assert status == 500
    assert json.loads(data) == {"error": "table not found"}


def test_entry_fields(app):
    status, data, _ = call(app, "/bond/entryFields", '{"table": "token_balance"}')
    assert status == 200
    assert json.loads(data) == {
        "AccountAddress": "string",
        "AccountID": "uint32",
        "Balance": "uint64",
        "ContractAddress": "string",
        "ID": "uint64",
        "TokenID": "uint32",
    }


def test_entry_fields_table_not_found(app):
    status, data, _ = call(app, "/bond/entryFields", '{"table": "no_such_table"}')
    assert status == 500
    assert json.loads(data) == {"error": "table not found"}


def test_query_simple(app, filled):
    status, data, _ = call(app, "/bond/query", '{"table": "token_balance"}')
    assert status == 200
    assert json.loads(data) == [ROW1, ROW2]


def test_query_with_limit(app, filled):
    status, data, _ = call(app, "/bond/query", '{"table": "token_balance", "limit": 1}')
    assert status == 200
    assert json.loads(data) == [ROW1]


def test_query_with_filter(app, filled):
    body = json.dumps({"table": "token_balance", "filter": {"ID": 1}})
    status, data, _ = call(app, "/bond/query", body)
    assert status == 200
    assert json.loads(data) == [ROW1]


def test_query_with_secondary_index(app, filled):
    body = json.dumps(
        {
            "table": "token_balance",
            "index": "account_address_idx",
            "indexSelector": {"AccountAddress": "0xa"},
        }
    )
    status, data, _ = call(app, "/bond/query", body)
    assert status == 200
    assert json.loads(data) == [ROW1, ROW2]

    body = json.dumps(
        {
            "table": "token_balance",
            "index": "account_address_idx",
            "indexSelector": {"AccountAddress": "0xb"},
        }
    )
    status, data, _ = call(app, "/bond/query", body)
    assert status == 200
    assert json.loads(data) == []


def test_query_with_after(app, filled):
    status, data, _ = call(app, "/bond/query", '{"table": "token_balance", "limit": 1}')
    assert status == 200
    results = json.loads(data)
    assert results == [ROW1]

    body = json.dumps({"table": "token_balance", "after": results[0]})
    status, data, _ = call(app, "/bond/query", body)
    assert status == 200
    assert json.loads(data) == [ROW2]


def test_query_table_not_found(app, filled):
    status, data, _ = call(app, "/bond/query", '{"table": "no_such_table", "limit": 1}')
    assert status == 500
    assert json.loads(data) == {"error": "table not found"}


def test_query_field_not_found_is_reported(app, filled):
    body = json.dumps(
        {
            "table": "token_balance",
            "index": "account_address_idx",
            "indexSelector": {"IDd": 5},
        }
    )
    status, data, _ = call(app, "/bond/query", body)
    assert status == 500
    assert json.loads(data) == {"error": "field 'IDd' not found"}


def test_member_names_match_case_insensitively(app):
    status, data, _ = call(app, "/bond/indexes", '{"Table": "token_balance"}')
    assert status == 200
    assert json.loads(data)[0] == "primary"


def test_unknown_path_is_not_found(app):
    status, data, headers = call(app, "/bond/unknown", "")
    assert status == 404
    assert data == b"404 page not found\n"
    assert headers["Content-Type"].startswith("text/plain")


def test_unsupported_accept(app):
    status, data, _ = call(app, "/bond/tables", "", accept="text/html")
    assert status == 406
    assert data == b""


def test_empty_body_is_an_error(app):
    status, data, _ = call(app, "/bond/indexes", "")
    assert status == 500
    assert "error" in json.loads(data)


def test_non_object_body_is_an_error(app):
    status, data, _ = call(app, "/bond/query", "[1, 2]")
    assert status == 500
    assert set(json.loads(data)) == {"error"}


def test_negative_limit_is_an_error(app, filled):
    status, data, _ = call(app, "/bond/query", '{"table": "token_balance", "limit": -1}')
    assert status == 500
    assert "limit" in json.loads(data)["error"]


def test_wrong_table_type_is_an_error(app):
    status, data, _ = call(app, "/bond/indexes", '{"table": 5}')
    assert status == 500
    assert "table" in json.loads(data)["error"]