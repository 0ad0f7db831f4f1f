"""
deferring/orm - SQLAlchemy binding

- adapter: SqlAlchemyAdapter over a relationship() attribute
- descriptors: deferred_many / deferred_ids model declarations
- persistence: save() applying pending changes
"""

from deferring.orm.adapter import SqlAlchemyAdapter
from deferring.orm.descriptors import (
    DeferredRelation,
    DeferredIds,
    deferred_many,
    deferred_ids,
    deferred_relations,
    instantiated_proxies,
    reload_deferred,
)
from deferring.orm.persistence import pending_proxies, apply_pending_changes, save

__all__ = [
    "SqlAlchemyAdapter",
    "DeferredRelation",
    "DeferredIds",
    "deferred_many",
    "deferred_ids",
    "deferred_relations",
    "instantiated_proxies",
    "reload_deferred",
    "pending_proxies",
    "apply_pending_changes",
    "save",
]
