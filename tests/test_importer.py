import json

import pytest

from campfire.errors import InvalidFormat
from campfire.importer import import_postman_v21
from campfire.models import ApiKeyAuth, BearerAuth, Folder, RequestItem
from campfire.store import load_collection

POSTMAN = {
    "info": {"name": "Petstore", "schema": "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"},
    "item": [
        {
            "name": "Pets",
            "item": [
                {
                    "name": "List pets",
                    "request": {
                        "method": "get",
                        "header": [{"key": "Accept", "value": "application/json"},
                                   {"key": "X-Debug", "value": "1", "disabled": True}],
                        "url": {
                            "raw": "https://petstore.test/pets?limit=10",
                            "query": [{"key": "limit", "value": "10"}],
                        },
                        "auth": {"type": "bearer", "bearer": [{"key": "token", "value": "abc", "type": "string"}]},
                    },
                },
                {"name": "Empty folder", "item": []},
            ],
        },
        {
            "name": "Login",
            "request": {
                "method": "POST",
                "url": "https://petstore.test/login",
                "body": {"mode": "urlencoded", "urlencoded": [
                    {"key": "user", "value": "a"},
                    {"key": "skip", "value": "x", "disabled": True},
                    {"key": "pass", "value": "b"},
                ]},
                "auth": {"type": "apikey", "apikey": [
                    {"key": "key", "value": "api_key"},
                    {"key": "value", "value": "s3cret"},
                    {"key": "in", "value": "query"},
                ]},
            },
        },
        {"name": "Raw body", "request": {"method": "PUT", "url": "petstore.test/pets/1",
                                         "body": {"mode": "raw", "raw": "{\"name\": \"rex\"}"}}},
    ],
}


def _write(tmp_path, data):
    path = tmp_path / "petstore.postman_collection.json"
    path.write_text(json.dumps(data))
    return path


def test_import_builds_tree(store, tmp_path):
    result = import_postman_v21(_write(tmp_path, POSTMAN), tmp_path / "petstore", store)

    assert result["errors"] == []
    assert result["imported_count"] == 5

    opened = store.get_collection(result["collection_id"])
    assert opened.file_path == tmp_path / "petstore.campfire"
    col = load_collection(opened.file_path)
    assert col.name == "Petstore"

    pets, login, raw = col.items
    assert isinstance(pets, Folder)
    list_pets, empty = pets.children
    assert isinstance(empty, Folder) and empty.children == []

    data = list_pets.request_data
    assert data.method == "GET"
    assert data.url == "https://petstore.test/pets"
    assert [(p.key, p.value) for p in data.params] == [("limit", "10")]
    assert [(h.key, h.enabled) for h in data.headers] == [("Accept", True), ("X-Debug", False)]
    assert data.auth == BearerAuth(token="abc")

    assert isinstance(login, RequestItem)
    assert login.request_data.body == "user=a&pass=b"
    assert login.request_data.auth == ApiKeyAuth(key="api_key", value="s3cret", location="query")

    assert raw.request_data.body == '{"name": "rex"}'
    assert raw.request_data.auth is None


def test_bad_items_collected_as_errors(store, tmp_path):
    data = {"info": {"name": "Broken"}, "item": [
        {"name": "bad", "request": {"method": 42, "url": "x"}},
        {"name": "good", "request": {"method": "GET", "url": "x"}},
    ]}
    result = import_postman_v21(_write(tmp_path, data), tmp_path / "broken.json", store)
    assert result["imported_count"] == 1
    assert len(result["errors"]) == 1
    assert result["errors"][0].startswith('Item "bad"')


def test_invalid_json_rejected(store, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("not json")
    with pytest.raises(InvalidFormat):
        import_postman_v21(path, tmp_path / "out", store)


def test_non_object_items_skipped_with_error(store, tmp_path):
    data = {"info": {"name": "Stray"}, "item": [
        "stray",
        {"name": "ok", "request": "https://a.test"},
        {"name": "folder", "item": [7]},
    ]}
    result = import_postman_v21(_write(tmp_path, data), tmp_path / "stray.json", store)
    assert result["imported_count"] == 2
    assert result["errors"] == [
        'Item "?": expected an object, got str',
        'Item "?": expected an object, got int',
    ]
