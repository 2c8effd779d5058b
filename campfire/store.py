"""
File-backed collection store.

Each collection lives in one JSON file. Every mutation loads the file, edits
the tree in memory and rewrites the whole document before returning; a
failed write leaves the previous file in place and nothing is committed.
"""
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from campfire import tree
from campfire.errors import InvalidFormat, InvalidMove, NotFound, ParentNotFound, StoreIOError
from campfire.models import (
    Collection,
    CollectionItem,
    Folder,
    OpenCollection,
    RequestData,
    RequestItem,
    utcnow,
)
from campfire.settings import Settings

log = logging.getLogger(__name__)


class Session:
    """
    Registry of open collections: collection ID -> backing file path.

    Locks outlive close and reset so a caller still holding one keeps
    excluding whoever reopens the same collection.
    """

    def __init__(self):
        self._paths: dict[str, Path] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def register(self, collection_id: str, path: Path) -> None:
        with self._guard:
            self._paths[collection_id] = path

    def evict(self, collection_id: str) -> None:
        with self._guard:
            self._paths.pop(collection_id, None)

    def path_for(self, collection_id: str) -> Path:
        with self._guard:
            path = self._paths.get(collection_id)
        if path is None:
            raise NotFound(f"Collection {collection_id} is not open")
        return path

    def lock_for(self, collection_id: str) -> threading.RLock:
        with self._guard:
            return self._locks.setdefault(collection_id, threading.RLock())

    def entries(self) -> list[tuple[str, Path]]:
        with self._guard:
            return list(self._paths.items())

    def clear(self) -> None:
        with self._guard:
            self._paths.clear()

    def __contains__(self, collection_id: str) -> bool:
        with self._guard:
            return collection_id in self._paths

    def __len__(self) -> int:
        with self._guard:
            return len(self._paths)


# ── File IO ───────────────────────────────────────────────────────────────────

def load_collection(path: Path) -> Collection:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise NotFound(f"Collection file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise StoreIOError(f"Failed to read {path}: {exc}") from exc
    try:
        return Collection.model_validate_json(text)
    except ValidationError as exc:
        raise InvalidFormat(f"{path} is not a valid collection: {exc}") from exc


def save_collection(collection: Collection, path: Path) -> None:
    """Atomically replace `path` with the serialized collection."""
    path = Path(path)
    collection.updated_at = utcnow()
    data = collection.to_json()
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as f:
            tmp_name = f.name
            f.write(data)
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise StoreIOError(f"Failed to write {path}: {exc}") from exc


class CollectionStore:

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self.session = Session()

    @contextmanager
    def _editing(self, collection_id: str) -> Iterator[Collection]:
        """Load, yield for mutation, then persist. Nothing is saved if the body raises."""
        path = self.session.path_for(collection_id)
        with self.session.lock_for(collection_id):
            collection = load_collection(path)
            yield collection
            save_collection(collection, path)

    def reset(self) -> None:
        """Drop every open collection. Files are left untouched."""
        self.session.clear()

    # ── Collections ───────────────────────────────────────────────────────────

    def create_collection(self, name: str, path: str | Path) -> OpenCollection:
        path = Path(path)
        if not path.suffix:
            path = path.with_name(path.name + self.settings.default_extension)
        collection = Collection(name=name)
        collection.updated_at = collection.created_at
        save_collection(collection, path)
        self.session.register(collection.id, path)
        log.info("Created collection %s (%s) at %s", collection.name, collection.id, path)
        return OpenCollection(collection=collection, file_path=path)

    def save_collection_as(self, collection: Collection, path: str | Path) -> OpenCollection:
        """Persist a fully built collection at `path` and open it."""
        path = Path(path)
        if not path.suffix:
            path = path.with_name(path.name + self.settings.default_extension)
        save_collection(collection, path)
        self.session.register(collection.id, path)
        log.info("Saved collection %s (%s) at %s", collection.name, collection.id, path)
        return OpenCollection(collection=collection, file_path=path)

    def open_collection(self, path: str | Path) -> OpenCollection:
        path = Path(path)
        collection = load_collection(path)
        self.session.register(collection.id, path)
        log.info("Opened collection %s (%s) from %s", collection.name, collection.id, path)
        return OpenCollection(collection=collection, file_path=path)

    def close_collection(self, collection_id: str) -> None:
        if collection_id in self.session:
            log.info("Closed collection %s", collection_id)
        self.session.evict(collection_id)

    def get_collection(self, collection_id: str) -> OpenCollection:
        path = self.session.path_for(collection_id)
        return OpenCollection(collection=load_collection(path), file_path=path)

    def list_open_collections(self) -> list[OpenCollection]:
        result = []
        for collection_id, path in self.session.entries():
            try:
                collection = load_collection(path)
            except (NotFound, InvalidFormat, StoreIOError) as exc:
                log.warning("Evicting collection %s: %s", collection_id, exc)
                self.session.evict(collection_id)
                continue
            result.append(OpenCollection(collection=collection, file_path=path))
        return result

    def update_collection(self, collection_id: str, name: str) -> OpenCollection:
        with self._editing(collection_id) as collection:
            collection.name = name
        return OpenCollection(collection=collection, file_path=self.session.path_for(collection_id))

    def delete_collection(self, collection_id: str) -> None:
        path = self.session.path_for(collection_id)
        self.session.evict(collection_id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise NotFound(f"Collection file not found: {path}") from exc
        except OSError as exc:
            raise StoreIOError(f"Failed to delete {path}: {exc}") from exc
        log.info("Deleted collection %s at %s", collection_id, path)

    # ── Items ─────────────────────────────────────────────────────────────────

    def _place(self, collection: Collection, parent_id: str | None, item: CollectionItem) -> None:
        if not parent_id:
            collection.items.append(item)
            return
        parent = tree.find_folder(collection.items, parent_id)
        if parent is None:
            raise ParentNotFound(f"Parent folder {parent_id} not found")
        parent.children.append(item)

    def create_folder(self, collection_id: str, parent_id: str | None, name: str) -> Folder:
        with self._editing(collection_id) as collection:
            folder = Folder(name=name)
            folder.updated_at = folder.created_at
            self._place(collection, parent_id, folder)
        return folder

    def create_request(self, collection_id: str, parent_id: str | None, name: str) -> RequestItem:
        with self._editing(collection_id) as collection:
            request = RequestItem(name=name, request_data=RequestData())
            request.updated_at = request.created_at
            self._place(collection, parent_id, request)
        return request

    def get_item(self, collection_id: str, item_id: str) -> CollectionItem:
        collection = self.get_collection(collection_id).collection
        item = tree.find_item(collection.items, item_id)
        if item is None:
            raise NotFound(f"Item {item_id} not found")
        return item

    def update_item(
        self,
        collection_id: str,
        item_id: str,
        name: str | None = None,
        request_data: RequestData | None = None,
    ) -> CollectionItem:
        with self._editing(collection_id) as collection:
            item = tree.find_item(collection.items, item_id)
            if item is None:
                raise NotFound(f"Item {item_id} not found")
            if name:
                item.name = name
            if request_data is not None and isinstance(item, RequestItem):
                item.request_data = request_data.model_copy(deep=True)
            item.updated_at = utcnow()
        return item

    def delete_item(self, collection_id: str, item_id: str) -> None:
        with self._editing(collection_id) as collection:
            path = tree.find_path(collection.items, item_id)
            if path is None:
                raise NotFound(f"Item {item_id} not found")
            tree.remove_at(collection.items, path)

    def move_item(self, collection_id: str, item_id: str, new_parent_id: str | None) -> None:
        with self._editing(collection_id) as collection:
            path = tree.find_path(collection.items, item_id)
            if path is None:
                raise NotFound(f"Item {item_id} not found")

            if new_parent_id:
                parent_path = tree.find_path(collection.items, new_parent_id)
                if parent_path is None or not isinstance(tree.get_at(collection.items, parent_path), Folder):
                    raise ParentNotFound(f"New parent folder {new_parent_id} not found")
                if tree.is_within(parent_path, path):
                    raise InvalidMove(f"Cannot move {item_id} into itself or one of its descendants")

            item = tree.remove_at(collection.items, path)
            # indices may have shifted after the removal, resolve the parent again
            self._place(collection, new_parent_id, item)
