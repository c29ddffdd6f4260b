from __future__ import annotations

import json
import os

import pytest

# boto3 clients are built at import time; keep them offline and region-pinned.
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "ap-south-1")

from sentinel_city.handlers import api  # noqa: E402
from sentinel_city.store import FileBackend, WardStore  # noqa: E402


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "db.json"


@pytest.fixture
def store(db_path) -> WardStore:
    return WardStore(FileBackend(db_path))


@pytest.fixture
def api_store(store, monkeypatch) -> WardStore:
    """Point the API handler's cached store at a temporary file."""

    monkeypatch.setattr(api, "_store", store)
    return store


def make_event(method, path, body=None, query=None):
    return {
        "httpMethod": method,
        "path": path,
        "body": json.dumps(body) if body is not None else None,
        "queryStringParameters": query,
    }


@pytest.fixture
def call(api_store):
    """Invoke the API handler and decode the JSON response."""

    def _call(method, path, body=None, query=None):
        resp = api.handler(make_event(method, path, body, query), None)
        payload = json.loads(resp["body"]) if resp["body"] else None
        return resp["statusCode"], payload

    return _call
