import json

import pytest
from pydantic import ValidationError

from campfire.models import (
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    Collection,
    Folder,
    HTTPResponse,
    KeyValuePair,
    NoAuth,
    RequestData,
    RequestItem,
)


def test_folder_serializes_empty_children_and_no_request():
    col = Collection(name="c", items=[Folder(name="f")])
    doc = json.loads(col.to_json())
    folder = doc["items"][0]
    assert folder["type"] == "folder"
    assert folder["children"] == []
    assert "request" not in folder


def test_request_serializes_without_children():
    col = Collection(name="c", items=[RequestItem(name="r")])
    doc = json.loads(col.to_json())
    req = doc["items"][0]
    assert req["type"] == "request"
    assert "children" not in req
    assert req["request"] == {"method": "GET", "url": "", "headers": [], "params": [], "body": ""}
    assert set(doc) == {"id", "name", "items", "createdAt", "updatedAt"}


def test_request_data_key_accepted_on_load():
    doc = {
        "id": "c1", "name": "c",
        "createdAt": "2024-05-01T10:00:00Z", "updatedAt": "2024-05-01T10:00:00Z",
        "items": [{
            "id": "r1", "name": "r", "type": "request",
            "createdAt": "2024-05-01T10:00:00Z", "updatedAt": "2024-05-01T10:00:00Z",
            "requestData": {"method": "POST", "url": "x.io", "headers": [], "params": [], "body": "{}"},
        }],
    }
    col = Collection.model_validate(doc)
    assert col.items[0].request_data.method == "POST"


def test_auth_variants_by_type():
    data = RequestData.model_validate({"auth": {"type": "bearer", "bearerToken": "t", "basicUsername": "stale"}})
    assert isinstance(data.auth, BearerAuth)
    assert data.auth.token == "t"
    assert not hasattr(data.auth, "username")

    assert isinstance(RequestData.model_validate({"auth": {"type": "none"}}).auth, NoAuth)
    assert isinstance(RequestData.model_validate({"auth": {"type": "basic"}}).auth, BasicAuth)
    key = RequestData.model_validate({"auth": {"type": "apikey", "apiKeyKey": "k"}}).auth
    assert isinstance(key, ApiKeyAuth)
    assert key.location == "header"


def test_unknown_auth_type_rejected():
    with pytest.raises(ValidationError):
        RequestData.model_validate({"auth": {"type": "oauth2"}})


def test_auth_serialized_with_camel_case_keys():
    data = RequestData(auth=ApiKeyAuth(key="X-Key", value="v", location="query"))
    dumped = data.model_dump(by_alias=True)
    assert dumped["auth"] == {"type": "apikey", "apiKeyKey": "X-Key", "apiKeyValue": "v", "apiKeyLocation": "query"}


def test_key_value_pair_defaults_enabled():
    assert KeyValuePair(key="a").enabled is True


def test_response_envelope_aliases():
    resp = HTTPResponse(status=200, status_text="OK", elapsed_ms=5, size_bytes=3)
    dumped = resp.model_dump(by_alias=True)
    assert dumped["statusText"] == "OK"
    assert dumped["elapsedMs"] == 5
    assert dumped["sizeBytes"] == 3
    assert resp.ok
    assert not HTTPResponse(error="boom").ok
