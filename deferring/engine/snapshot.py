"""
deferring/engine/snapshot.py

Baseline snapshot - the elements considered linked as of the last load.
"""
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Iterator, Tuple

from deferring.engine.identity import IdentityKey, identity_key


@dataclass(frozen=True)
class Baseline:
    """
    Immutable ordered copy of the linked elements

    Attributes:
        elements: Elements in store order
        keys: Identity keys of ``elements``
    """

    elements: Tuple[Any, ...] = ()
    keys: FrozenSet[IdentityKey] = frozenset()

    @classmethod
    def capture(cls, elements: Iterable[Any]) -> "Baseline":
        """Freeze a copy of ``elements``"""
        frozen = tuple(elements)
        return cls(elements=frozen, keys=frozenset(identity_key(e) for e in frozen))

    def __contains__(self, element: Any) -> bool:
        return identity_key(element) in self.keys

    def __iter__(self) -> Iterator[Any]:
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)


__all__ = ["Baseline"]
