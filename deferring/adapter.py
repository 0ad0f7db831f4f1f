"""
deferring/adapter.py

Source adapter interface - the capabilities a deferred relation consumes from
the backing store. The proxy never reaches past this interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from deferring.errors import ElementValidationError
from deferring.relation import Relation


@dataclass
class CreateResult:
    """
    Outcome of SourceAdapter.create

    Attributes:
        element: The built element (persisted only on success)
        errors: Validation messages, empty on success
    """

    element: Any
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @staticmethod
    def ok(element: Any) -> "CreateResult":
        """Successful result"""
        return CreateResult(element=element)

    @staticmethod
    def fail(element: Any, errors: Iterable[str]) -> "CreateResult":
        """Failed result carrying validation messages"""
        return CreateResult(element=element, errors=list(errors))

    def unwrap(self) -> Any:
        """Return the element or raise ElementValidationError"""
        if self.errors:
            raise ElementValidationError(self.element, self.errors)
        return self.element


class SourceAdapter(ABC):
    """
    Backing-store capabilities of one (parent, relation) pair

    Subclasses implement the fetching, lightweight queries and creation;
    inverse binding is driven by the relation's InverseBinder.
    """

    def __init__(self, relation: Relation):
        self.relation = relation

    # ---- materialization ----

    @abstractmethod
    def fetch_all(self) -> List[Any]:
        """All currently persisted elements, in store order"""

    @abstractmethod
    def reload(self) -> None:
        """Drop any store-side cache so the next fetch_all re-reads"""

    # ---- lightweight queries ----

    @abstractmethod
    def count(self) -> int:
        """Number of persisted elements"""

    @abstractmethod
    def first(self) -> Optional[Any]:
        """First persisted element or None"""

    @abstractmethod
    def last(self) -> Optional[Any]:
        """Last persisted element or None"""

    def is_empty(self) -> bool:
        return self.count() == 0

    @abstractmethod
    def query(self, *criteria: Any) -> List[Any]:
        """Persisted elements matching store-level criteria"""

    @abstractmethod
    def find(self, ident: Any) -> Any:
        """Persisted element of this relation by id; raises ElementNotFoundError"""

    @abstractmethod
    def resolve(self, ids: Iterable[Any]) -> List[Any]:
        """Elements of the target type by id, in order; raises ElementNotFoundError"""

    # ---- creation ----

    @abstractmethod
    def create(self, *args, **kwargs) -> CreateResult:
        """Build, validate and persist an element immediately"""

    def create_or_fail(self, *args, **kwargs) -> Any:
        """Like create, raising ElementValidationError on validation failure"""
        return self.create(*args, **kwargs).unwrap()

    # ---- inverse ----

    def set_inverse(self, child: Any, parent: Any) -> None:
        """Point ``child`` back at ``parent`` when the relation declares an inverse"""
        if self.relation.inverse is not None:
            self.relation.inverse.bind(child, parent)

    def clear_inverse(self, child: Any, parent: Any) -> None:
        """Detach ``child`` from ``parent`` after an unlink"""
        if self.relation.inverse is not None:
            self.relation.inverse.unbind(child, parent)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.relation.name!r})"


__all__ = ["CreateResult", "SourceAdapter"]
