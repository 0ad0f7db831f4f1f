"""
deferring/engine - state and bookkeeping behind a deferred relation

- identity: element identity for diffs
- snapshot: baseline snapshot
- load_state: GHOST/LOADED state machine
- changeset: pending links/unlinks
- callbacks: link/unlink listener registry
"""

from deferring.engine.identity import IdentityKey, is_persisted, identity_key, same_element
from deferring.engine.snapshot import Baseline
from deferring.engine.load_state import LoadState, LoadStateMachine
from deferring.engine.changeset import ChangeSet, difference
from deferring.engine.callbacks import (
    LinkEvent,
    MutationKind,
    Listener,
    ListenerHandle,
    CallbackRegistry,
)

__all__ = [
    "IdentityKey",
    "is_persisted",
    "identity_key",
    "same_element",
    "Baseline",
    "LoadState",
    "LoadStateMachine",
    "ChangeSet",
    "difference",
    "LinkEvent",
    "MutationKind",
    "Listener",
    "ListenerHandle",
    "CallbackRegistry",
]
