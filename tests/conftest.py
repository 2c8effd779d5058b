import pytest

from campfire.store import CollectionStore


@pytest.fixture
def store():
    s = CollectionStore()
    yield s
    s.reset()


@pytest.fixture
def opened(store, tmp_path):
    return store.create_collection("My API", tmp_path / "my-api")
