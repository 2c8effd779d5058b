"""
Index-path helpers over a collection's item tree.

An index path is the tuple of child indices leading from the root item list
to one item: (2,) is the third root item, (2, 0) its first child. Lookups are
depth-first, pre-order, first match wins.
"""
from typing import Iterator

from campfire.models import CollectionItem, Folder

IndexPath = tuple[int, ...]


def find_path(items: list[CollectionItem], item_id: str) -> IndexPath | None:
    for index, item in enumerate(items):
        if item.id == item_id:
            return (index,)
        if isinstance(item, Folder):
            sub = find_path(item.children, item_id)
            if sub is not None:
                return (index, *sub)
    return None


def container_at(items: list[CollectionItem], path: IndexPath) -> list[CollectionItem]:
    """The list that directly holds the item at `path`."""
    container = items
    for index in path[:-1]:
        container = container[index].children
    return container


def get_at(items: list[CollectionItem], path: IndexPath) -> CollectionItem:
    return container_at(items, path)[path[-1]]


def remove_at(items: list[CollectionItem], path: IndexPath) -> CollectionItem:
    return container_at(items, path).pop(path[-1])


def find_item(items: list[CollectionItem], item_id: str) -> CollectionItem | None:
    path = find_path(items, item_id)
    return None if path is None else get_at(items, path)


def find_folder(items: list[CollectionItem], folder_id: str) -> Folder | None:
    item = find_item(items, folder_id)
    return item if isinstance(item, Folder) else None


def is_within(path: IndexPath, ancestor: IndexPath) -> bool:
    """True if `path` is `ancestor` itself or lies below it."""
    return path[:len(ancestor)] == ancestor


def walk(items: list[CollectionItem]) -> Iterator[CollectionItem]:
    for item in items:
        yield item
        if isinstance(item, Folder):
            yield from walk(item.children)


def count_items(items: list[CollectionItem]) -> int:
    return sum(1 for _ in walk(items))
