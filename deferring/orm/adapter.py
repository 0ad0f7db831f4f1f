"""
deferring/orm/adapter.py

Source adapter over a SQLAlchemy relationship() attribute.

The relationship collection itself is only read (fetch_all) and expired
(reload); pending changes are applied to it by deferring.orm.persistence.save.
Lightweight reads use ``Query.with_parent`` so they never load the whole
collection.
"""
from typing import Any, Iterable, List, Optional
import logging

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Query, Session, object_session
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.sql import operators

from deferring.adapter import CreateResult, SourceAdapter
from deferring.errors import DetachedParentError, ElementNotFoundError
from deferring.relation import Relation

logger = logging.getLogger(__name__)


def _reversed(clause: Any) -> Any:
    modifier = getattr(clause, "modifier", None)
    if modifier is operators.desc_op:
        return clause.element.asc()
    if modifier is operators.asc_op:
        return clause.element.desc()
    return clause.desc()


class SqlAlchemyAdapter(SourceAdapter):
    """
    Adapter for ``getattr(parent, attribute)`` where ``attribute`` is a
    mapped relationship of the parent's class

    Example:
        >>> adapter = SqlAlchemyAdapter(bob, "_teams", Relation(name="teams"))
        >>> adapter.count()     # SELECT count(*) ... no collection load
        3
    """

    def __init__(self, parent: Any, attribute: str, relation: Relation, session: Optional[Session] = None):
        mapper = sa_inspect(type(parent))
        if attribute not in mapper.relationships:
            raise AttributeError(f"{type(parent).__name__}.{attribute} is not a mapped relationship")

        self._parent = parent
        self._attribute = attribute
        self._session = session
        self._property = mapper.relationships[attribute]
        self._target = self._property.mapper.class_

        if relation.factory is None:
            relation.factory = self._target
        super().__init__(relation)

    @property
    def parent(self) -> Any:
        return self._parent

    @property
    def attribute(self) -> str:
        return self._attribute

    @property
    def target(self) -> type:
        return self._target

    @property
    def session(self) -> Optional[Session]:
        return object_session(self._parent) or self._session

    @property
    def collection(self) -> Any:
        """The underlying instrumented collection (loads it)"""
        return getattr(self._parent, self._attribute)

    def _require_session(self, operation: str) -> Session:
        session = self.session
        if session is None:
            raise DetachedParentError(self._parent, operation)
        return session

    def _parent_persisted(self) -> bool:
        return sa_inspect(self._parent).has_identity

    def _related(self) -> Query:
        session = self._require_session("query")
        relationship_attr = getattr(type(self._parent), self._attribute)
        return session.query(self._target).with_parent(self._parent, relationship_attr)

    def _ordering(self) -> List[Any]:
        """The relationship's order_by, then the primary key as tie breaker"""
        order = list(self._property.order_by or ())
        for column in sa_inspect(self._target).primary_key:
            if not any(clause is column for clause in order):
                order.append(column)
        return order

    def _ordered(self, descending: bool = False) -> Query:
        order = self._ordering()
        if descending:
            order = [_reversed(clause) for clause in order]
        return self._related().order_by(*order)

    # ---- materialization ----

    def fetch_all(self) -> List[Any]:
        return list(self.collection)

    def reload(self) -> None:
        session = self.session
        if session is not None and self._parent_persisted():
            session.expire(self._parent, [self._attribute])

    # ---- lightweight queries ----

    def count(self) -> int:
        if not self._parent_persisted():
            return len(self.collection)
        return self._related().count()

    def first(self) -> Optional[Any]:
        if not self._parent_persisted():
            collection = self.collection
            return collection[0] if collection else None
        return self._ordered().first()

    def last(self) -> Optional[Any]:
        if not self._parent_persisted():
            collection = self.collection
            return collection[-1] if collection else None
        return self._ordered(descending=True).first()

    def is_empty(self) -> bool:
        if not self._parent_persisted():
            return len(self.collection) == 0
        return self._ordered().limit(1).first() is None

    def query(self, *criteria: Any) -> List[Any]:
        if not self._parent_persisted():
            return []
        return self._ordered().filter(*criteria).all()

    def find(self, ident: Any) -> Any:
        element = None
        if self._parent_persisted():
            columns = sa_inspect(self._target).primary_key
            element = self._related().filter(columns[0] == ident).first()
        if element is None:
            raise ElementNotFoundError(self._target.__name__, ident)
        return element

    def resolve(self, ids: Iterable[Any]) -> List[Any]:
        session = self._require_session("resolve")
        elements = []
        for ident in ids:
            element = session.get(self._target, ident)
            if element is None:
                raise ElementNotFoundError(self._target.__name__, ident)
            elements.append(element)
        return elements

    # ---- inverse ----

    def _mapped_inverse(self, child: Any) -> Optional[str]:
        inverse = self.relation.inverse
        if inverse is None:
            return None
        mapper = sa_inspect(type(child), raiseerr=False)
        if mapper is not None and inverse.name in mapper.relationships:
            return inverse.name
        return None

    def set_inverse(self, child: Any, parent: Any) -> None:
        """
        Point ``child`` back at ``parent`` without firing backref events

        A plain assignment to a back_populates attribute would append the
        child to the parent's relationship collection right away; the
        collection must only change in save().
        """
        name = self._mapped_inverse(child)
        if name is None:
            super().set_inverse(child, parent)
            return
        set_committed_value(child, name, parent)

    def clear_inverse(self, child: Any, parent: Any) -> None:
        name = self._mapped_inverse(child)
        if name is None:
            super().clear_inverse(child, parent)
            return

        state = sa_inspect(child)
        session = object_session(child)
        if session is not None and state.persistent:
            # back to the stored value on next access
            session.expire(child, [name])
        elif state.dict.get(name) is parent:
            set_committed_value(child, name, None)

    # ---- creation ----

    def create(self, *args, **kwargs) -> CreateResult:
        session = self._require_session("create")
        element = self.relation.build(*args, **kwargs)

        errors = self.relation.validate(element)
        if errors:
            logger.info(f"{self._target.__name__} not created for {self.relation.name}: {errors}")
            return CreateResult.fail(element, errors)

        self.set_inverse(element, self._parent)
        self.collection.append(element)
        session.add(element)
        session.flush()
        logger.info(f"Created {self._target.__name__} {element!r} on {self.relation.name}")
        return CreateResult.ok(element)

    def __repr__(self) -> str:
        return f"SqlAlchemyAdapter({type(self._parent).__name__}.{self._attribute})"


__all__ = ["SqlAlchemyAdapter"]
