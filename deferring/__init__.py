"""
deferring - deferred many-valued relations

Additions to and removals from a relation are kept in memory until the parent
is saved, while the relation still behaves like an ordinary collection.

Usage:
    >>> from deferring.orm import deferred_many, deferred_ids, save
    >>> bob.teams.append(dba)
    >>> bob.teams.links()
    [Team(id=1)]
    >>> save(bob)

Layout:
    - engine: load state, baseline, change set, callbacks
    - proxy: DeferredCollection
    - adapter: SourceAdapter interface
    - orm: SQLAlchemy binding
"""

from deferring.errors import (
    DeferringError,
    ElementValidationError,
    ElementNotFoundError,
    DetachedParentError,
    InvalidTransitionError,
)
from deferring.relation import DependentPolicy, InverseBinder, Relation, parse_identifiers
from deferring.adapter import CreateResult, SourceAdapter
from deferring.engine import (
    LoadState,
    LoadStateMachine,
    Baseline,
    ChangeSet,
    LinkEvent,
    ListenerHandle,
    CallbackRegistry,
    identity_key,
    is_persisted,
)
from deferring.proxy import DeferredCollection

__version__ = "0.1.0"

__all__ = [
    "DeferringError",
    "ElementValidationError",
    "ElementNotFoundError",
    "DetachedParentError",
    "InvalidTransitionError",
    "DependentPolicy",
    "InverseBinder",
    "Relation",
    "parse_identifiers",
    "CreateResult",
    "SourceAdapter",
    "LoadState",
    "LoadStateMachine",
    "Baseline",
    "ChangeSet",
    "LinkEvent",
    "ListenerHandle",
    "CallbackRegistry",
    "identity_key",
    "is_persisted",
    "DeferredCollection",
]
