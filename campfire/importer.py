"""
Postman v2.1 collection importer.
Converts a .postman_collection.json file into a new Campfire collection file.
"""
import json
import logging
from pathlib import Path

from campfire.errors import InvalidFormat, StoreIOError
from campfire.models import (
    ApiKeyAuth,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    Collection,
    CollectionItem,
    Folder,
    KeyValuePair,
    NoAuth,
    RequestData,
    RequestItem,
)
from campfire.store import CollectionStore

log = logging.getLogger(__name__)


def _pairs(entries: list) -> list[KeyValuePair]:
    return [
        KeyValuePair(
            key=str(e.get('key', '')),
            value=str(e.get('value', '') or ''),
            enabled=not e.get('disabled', False),
        )
        for e in entries
        if isinstance(e, dict)
    ]


def _parse_url(url_obj) -> tuple[str, list[KeyValuePair]]:
    """
    Returns (url_string, params_list).
    url_obj can be a plain string or a Postman URL object. When the object
    carries a query list, the query is dropped from the raw string so it is
    not sent twice.
    """
    if isinstance(url_obj, str):
        return url_obj, []
    raw = url_obj.get('raw', '')
    query = url_obj.get('query', [])
    if query:
        raw = raw.split('?', 1)[0]
    return raw, _pairs(query)


def _parse_body(body_obj: dict) -> str:
    if not body_obj:
        return ''
    mode = body_obj.get('mode', 'none')
    if mode == 'raw':
        return body_obj.get('raw', '')
    if mode == 'urlencoded':
        return '&'.join(
            f"{p.key}={p.value}" for p in _pairs(body_obj.get('urlencoded', [])) if p.enabled
        )
    # formdata, file, graphql: not representable as a text body
    return ''


def _parse_auth(auth_obj: dict | None) -> AuthConfig | None:
    """Postman keeps auth settings as [{key, value}] lists under the auth type's name."""
    if not auth_obj:
        return None
    auth_type = auth_obj.get('type', 'noauth')
    values = {
        e.get('key'): str(e.get('value', '') or '')
        for e in auth_obj.get(auth_type, [])
        if isinstance(e, dict)
    }
    if auth_type == 'basic':
        return BasicAuth(username=values.get('username', ''), password=values.get('password', ''))
    if auth_type == 'bearer':
        return BearerAuth(token=values.get('token', ''))
    if auth_type == 'apikey':
        location = 'query' if values.get('in') == 'query' else 'header'
        return ApiKeyAuth(key=values.get('key', ''), value=values.get('value', ''), location=location)
    return NoAuth()


def _import_items(postman_items: list, errors: list[str], counter: list[int]) -> list[CollectionItem]:
    """Recursively convert Postman items (folders and requests)."""
    items: list[CollectionItem] = []
    for pm_item in postman_items:
        name = pm_item.get('name', 'Untitled') if isinstance(pm_item, dict) else '?'
        try:
            if not isinstance(pm_item, dict):
                raise TypeError(f'expected an object, got {type(pm_item).__name__}')

            if 'item' in pm_item:
                folder = Folder(name=name)
                counter[0] += 1
                folder.children = _import_items(pm_item['item'], errors, counter)
                items.append(folder)

            elif 'request' in pm_item:
                req = pm_item['request']
                if isinstance(req, str):
                    # shorthand form: the request is just a URL
                    req = {'url': req}
                url, params = _parse_url(req.get('url', ''))
                request_data = RequestData(
                    method=req.get('method', 'GET').upper(),
                    url=url,
                    params=params,
                    headers=_pairs(req.get('header', [])),
                    body=_parse_body(req.get('body', {})),
                    auth=_parse_auth(req.get('auth')),
                )
                items.append(RequestItem(name=name, request_data=request_data))
                counter[0] += 1

        except Exception as exc:
            errors.append(f'Item "{name}": {exc}')
    return items


def import_postman_v21(source_path: str | Path, target_path: str | Path, store: CollectionStore) -> dict:
    """
    Parses a Postman v2.1 collection JSON file and saves it as a new collection.

    Returns:
    {
        "collection_id": str,
        "imported_count": int,
        "errors": list[str]
    }
    """
    try:
        with open(source_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise InvalidFormat(f'{source_path} is not valid JSON: {exc}') from exc
    except OSError as exc:
        raise StoreIOError(f'Failed to read {source_path}: {exc}') from exc
    if not isinstance(data, dict) or not isinstance(data.get('item', []), list):
        raise InvalidFormat(f'{source_path} is not a Postman v2.1 collection')

    errors: list[str] = []
    counter = [0]
    info = data.get('info', {})
    collection = Collection(name=info.get('name', 'Imported Collection'))
    collection.items = _import_items(data.get('item', []), errors, counter)

    opened = store.save_collection_as(collection, target_path)
    log.info('Imported %d items from %s (%d errors)', counter[0], source_path, len(errors))

    return {
        'collection_id': opened.collection.id,
        'imported_count': counter[0],
        'errors': errors,
    }
