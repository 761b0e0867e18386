import pytest

from mergemint.engine.collection import CompositeCollection
from mergemint.engine.config import preset_config


@pytest.fixture
def mini4() -> CompositeCollection:
    collection = CompositeCollection(preset_config("mini4"), owner="owner")
    collection.pool.medium.credit("alice", 10_000)
    collection.pool.medium.credit("bob", 10_000)
    return collection
