"""
deferring/engine/changeset.py

ChangeSet engine - pending links and unlinks as identity-based differences
between the working set and the baseline.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Set

from deferring.engine.identity import IdentityKey, identity_key
from deferring.engine.snapshot import Baseline


def difference(source: Sequence[Any], exclude: Set[IdentityKey]) -> List[Any]:
    """
    Elements of ``source`` whose identity is not in ``exclude``

    Order of ``source`` is kept and each identity is reported once.
    """
    seen: Set[IdentityKey] = set()
    result = []
    for element in source:
        key = identity_key(element)
        if key in exclude or key in seen:
            continue
        seen.add(key)
        result.append(element)
    return result


@dataclass
class ChangeSet:
    """
    Pending changes of one relation

    Attributes:
        links: Elements to link on the next save (working set order)
        unlinks: Elements to unlink on the next save (baseline order)
    """

    links: List[Any] = field(default_factory=list)
    unlinks: List[Any] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "ChangeSet":
        return cls()

    @classmethod
    def compute(cls, working: Optional[Sequence[Any]], baseline: Optional[Baseline]) -> "ChangeSet":
        """
        Diff ``working`` against ``baseline``

        A missing working set (relation never loaded) yields an empty change
        set; nothing can have changed.
        """
        if working is None or baseline is None:
            return cls.empty()
        working_keys = {identity_key(e) for e in working}
        return cls(
            links=difference(working, set(baseline.keys)),
            unlinks=difference(baseline.elements, working_keys),
        )

    def has_changes(self) -> bool:
        return bool(self.links or self.unlinks)


__all__ = ["difference", "ChangeSet"]
