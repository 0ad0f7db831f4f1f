"""
deferring/relation.py

Per-relation configuration resolved once at setup time: element factory,
inverse binder, dependent policy and validator.
"""
from typing import Any, Callable, Iterable, List, Optional, Union
from dataclasses import dataclass
from enum import Enum

from deferring.config import settings


class DependentPolicy(str, Enum):
    """What happens to an element removed through remove_and_mark()"""
    NULLIFY = "nullify"          # only the link is removed
    DESTROY = "destroy"          # element is deleted on save
    DELETE_ALL = "delete_all"    # element is deleted on save

    @property
    def destructive(self) -> bool:
        return self in (DependentPolicy.DESTROY, DependentPolicy.DELETE_ALL)


@dataclass(frozen=True)
class InverseBinder:
    """
    Setter pointing a child back at its parent

    Attributes:
        name: Inverse attribute name (read back by unbind)
        setter: Callable(child, parent)
    """

    name: str
    setter: Callable[[Any, Any], None]

    @classmethod
    def attribute(cls, name: str) -> "InverseBinder":
        """Binder assigning ``child.<name> = parent``"""

        def _set(child: Any, parent: Any) -> None:
            setattr(child, name, parent)

        return cls(name=name, setter=_set)

    def bind(self, child: Any, parent: Any) -> None:
        self.setter(child, parent)

    def unbind(self, child: Any, parent: Any) -> None:
        """Clear the pointer if it still refers to ``parent``"""
        if getattr(child, self.name, None) is parent:
            self.setter(child, None)


Validator = Callable[[Any], List[str]]


@dataclass
class Relation:
    """
    Relation configuration

    Attributes:
        name: Relation name (e.g. "teams")
        factory: Builds unsaved elements from keyword arguments
        inverse: Optional inverse binder
        dependent: Dependent-deletion policy
        validator: Returns validation messages for an element (empty = valid)
    """

    name: str
    factory: Optional[Callable[..., Any]] = None
    inverse: Optional[InverseBinder] = None
    dependent: DependentPolicy = DependentPolicy.NULLIFY
    validator: Optional[Validator] = None

    def __post_init__(self):
        if isinstance(self.inverse, str):
            self.inverse = InverseBinder.attribute(self.inverse)
        if self.dependent is None:
            self.dependent = DependentPolicy.NULLIFY
        elif not isinstance(self.dependent, DependentPolicy):
            self.dependent = DependentPolicy(self.dependent)

    @property
    def declares_inverse(self) -> bool:
        return self.inverse is not None

    def build(self, *args, **kwargs) -> Any:
        if self.factory is None:
            raise TypeError(f"Relation {self.name!r} has no element factory")
        return self.factory(*args, **kwargs)

    def validate(self, element: Any) -> List[str]:
        if self.validator is None:
            return []
        return list(self.validator(element) or [])


def parse_identifiers(value: Union[None, str, int, Iterable[Any]], delimiter: Optional[str] = None) -> List[int]:
    """
    Normalize an id list

    Accepts ``None`` (no ids), a delimited string ("1,2,3"), a single id or an
    iterable of ids. Blank entries are dropped.

    Example:
        >>> parse_identifiers("1, 2,,3")
        [1, 2, 3]
        >>> parse_identifiers([4, "", None, "5"])
        [4, 5]
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(delimiter or settings.ID_DELIMITER)
    elif isinstance(value, int):
        value = [value]

    ids = []
    for raw in value:
        if raw is None:
            continue
        if isinstance(raw, str):
            raw = raw.strip()
            if not raw:
                continue
        ids.append(int(raw))
    return ids


__all__ = [
    "DependentPolicy",
    "InverseBinder",
    "Validator",
    "Relation",
    "parse_identifiers",
]
