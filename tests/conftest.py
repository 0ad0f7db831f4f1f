"""
Pytest 配置和共享 fixtures
"""
import pytest

from deferring.proxy import DeferredCollection
from deferring.relation import Relation
from fakes import Item, Owner, RecordingAdapter


@pytest.fixture
def a():
    return Item(id=1, name="A")


@pytest.fixture
def b():
    return Item(id=2, name="B")


@pytest.fixture
def c():
    return Item(id=3, name="C")


@pytest.fixture
def owner():
    return Owner(id=10)


@pytest.fixture
def make_proxy(owner):
    """构建代理的工厂: make_proxy(rows, **relation_options) -> (proxy, adapter)"""

    def _make(rows=(), repository=None, **relation_options):
        relation_options.setdefault("factory", Item)
        relation = Relation(name="items", **relation_options)
        adapter = RecordingAdapter(rows, relation=relation, repository=repository)
        return DeferredCollection(owner, adapter), adapter

    return _make
