"""
deferring/engine/identity.py

Element identity for diff purposes.

Two elements are the same iff both are persisted with the same class and id,
or both are the same unsaved object.
"""
from typing import Any, Hashable, Tuple
from sqlalchemy import inspect as sa_inspect


IdentityKey = Tuple[Hashable, ...]


def is_persisted(element: Any) -> bool:
    """
    Whether the element has a stored row

    Mapped SQLAlchemy instances count as persisted once their state carries an
    identity key (persistent or detached). Other objects count as persisted
    when their ``id`` attribute is set.
    """
    state = sa_inspect(element, raiseerr=False)
    if state is not None and hasattr(state, "has_identity"):
        return state.has_identity
    return getattr(element, "id", None) is not None


def identity_key(element: Any) -> IdentityKey:
    """
    Hashable identity of an element

    Returns:
        ("row", class, id) for persisted elements,
        ("ref", id(element)) for unsaved ones
    """
    state = sa_inspect(element, raiseerr=False)
    if state is not None and hasattr(state, "has_identity"):
        if state.has_identity:
            return ("row", state.mapper.class_, state.identity)
        return ("ref", id(element))

    element_id = getattr(element, "id", None)
    if element_id is not None:
        return ("row", type(element), element_id)
    return ("ref", id(element))


def same_element(left: Any, right: Any) -> bool:
    """Identity comparison used by the diff"""
    return identity_key(left) == identity_key(right)


__all__ = ["IdentityKey", "is_persisted", "identity_key", "same_element"]
