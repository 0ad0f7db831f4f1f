"""
deferring/orm/descriptors.py

Model-level declarations of deferred relations.

    class Person(Base):
        _teams = relationship("Team", secondary=people_teams)
        teams = deferred_many("_teams")
        team_ids = deferred_ids("teams")

Each instance gets one DeferredCollection per relation, created on first
access and cached on the instance.
"""
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from deferring.orm.adapter import SqlAlchemyAdapter
from deferring.proxy import DeferredCollection
from deferring.relation import DependentPolicy, InverseBinder, Relation, Validator

_CACHE_PREFIX = "_deferred_"


class DeferredRelation:
    """
    Descriptor exposing a relationship() attribute as a DeferredCollection

    Attributes:
        attribute: Name of the underlying mapped relationship
        name: Name of this descriptor on the class (set by __set_name__)
    """

    def __init__(
        self,
        attribute: str,
        *,
        inverse: Union[None, str, InverseBinder] = None,
        dependent: Union[None, str, DependentPolicy] = None,
        validator: Optional[Validator] = None,
        factory: Optional[Callable[..., Any]] = None,
    ):
        self.attribute = attribute
        self.name: Optional[str] = None
        self._inverse = InverseBinder.attribute(inverse) if isinstance(inverse, str) else inverse
        self._dependent = DependentPolicy(dependent) if dependent else DependentPolicy.NULLIFY
        self._validator = validator
        self._factory = factory

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    @property
    def cache_key(self) -> str:
        return f"{_CACHE_PREFIX}{self.name}"

    def relation(self) -> Relation:
        """Fresh relation config for one instance"""
        return Relation(
            name=self.name,
            factory=self._factory,
            inverse=self._inverse,
            dependent=self._dependent,
            validator=self._validator,
        )

    def proxy_for(self, instance: Any) -> DeferredCollection:
        """Return the instance's proxy, creating it on first access"""
        proxy = instance.__dict__.get(self.cache_key)
        if proxy is None:
            adapter = SqlAlchemyAdapter(instance, self.attribute, self.relation())
            proxy = DeferredCollection(instance, adapter)
            instance.__dict__[self.cache_key] = proxy
        return proxy

    def peek(self, instance: Any) -> Optional[DeferredCollection]:
        """The instance's proxy if it was ever accessed, without creating one"""
        return instance.__dict__.get(self.cache_key)

    def __get__(self, instance: Any, owner: type):
        if instance is None:
            return self
        return self.proxy_for(instance)

    def __set__(self, instance: Any, value: Any) -> None:
        self.proxy_for(instance).replace(value)


class DeferredIds:
    """Descriptor reading and assigning a deferred relation by ids"""

    def __init__(self, relation_name: str):
        self.relation_name = relation_name

    def _proxy(self, instance: Any) -> DeferredCollection:
        return getattr(instance, self.relation_name)

    def __get__(self, instance: Any, owner: type):
        if instance is None:
            return self
        return self._proxy(instance).identifiers()

    def __set__(self, instance: Any, value: Any) -> None:
        self._proxy(instance).set_identifiers(value)


def deferred_many(attribute: str, **options) -> DeferredRelation:
    """Declare a deferred relation over the mapped relationship ``attribute``"""
    return DeferredRelation(attribute, **options)


def deferred_ids(relation_name: str) -> DeferredIds:
    """Declare an id accessor (``team_ids``) for a deferred relation"""
    return DeferredIds(relation_name)


def deferred_relations(model: type) -> Dict[str, DeferredRelation]:
    """Deferred relation descriptors declared on ``model`` and its bases"""
    found: Dict[str, DeferredRelation] = {}
    for klass in reversed(model.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, DeferredRelation):
                found[name] = value
    return found


def instantiated_proxies(instance: Any) -> Iterator[DeferredCollection]:
    """Proxies of ``instance`` that have been accessed at least once"""
    for descriptor in deferred_relations(type(instance)).values():
        proxy = descriptor.peek(instance)
        if proxy is not None:
            yield proxy


def reload_deferred(instance: Any) -> List[DeferredCollection]:
    """Reload every accessed deferred relation of ``instance``"""
    proxies = list(instantiated_proxies(instance))
    for proxy in proxies:
        proxy.reload()
    return proxies


__all__ = [
    "DeferredRelation",
    "DeferredIds",
    "deferred_many",
    "deferred_ids",
    "deferred_relations",
    "instantiated_proxies",
    "reload_deferred",
]
