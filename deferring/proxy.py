"""
deferring/proxy.py

Deferred collection proxy - sits between a parent and a many-valued relation.

Additions and removals are kept in memory until the parent is saved. The proxy
materializes the relation at most once per load, tracks a baseline of what is
linked in the store, and exposes the pending links/unlinks to the save
routine. Relations that were never touched cost no store round trip.
"""
from typing import Any, Callable, Iterable, Iterator, List, Optional, Set, Union
import logging

from deferring.adapter import CreateResult, SourceAdapter
from deferring.engine.callbacks import CallbackRegistry, LinkEvent, Listener, ListenerHandle, MutationKind
from deferring.engine.changeset import ChangeSet
from deferring.engine.identity import IdentityKey, identity_key
from deferring.engine.load_state import LoadState, LoadStateMachine
from deferring.relation import Relation, parse_identifiers

logger = logging.getLogger(__name__)


def _flatten(values: Iterable[Any]) -> Iterator[Any]:
    for value in values:
        if isinstance(value, (list, tuple, set, frozenset, DeferredCollection)):
            yield from _flatten(value)
        else:
            yield value


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _compact_unique(values: Iterable[Any]) -> List[Any]:
    """Flatten, drop None and dedupe by identity"""
    seen: Set[IdentityKey] = set()
    result = []
    for value in _flatten(values):
        if value is None:
            continue
        key = identity_key(value)
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
    return result


class DeferredCollection:
    """
    Collection proxy for one (parent, relation) pair

    Attributes:
        parent: Owning parent record
        adapter: Source adapter of the relation

    Example:
        >>> teams = DeferredCollection(bob, adapter)
        >>> teams.append(dba, support)
        >>> teams.links()
        [Team(id=1), Team(id=2)]
        >>> teams.remove(dba)
        >>> teams.links()
        [Team(id=2)]
    """

    def __init__(self, parent: Any, adapter: SourceAdapter):
        self.parent = parent
        self.adapter = adapter
        self._loader = LoadStateMachine(adapter)
        self._callbacks = CallbackRegistry()
        self._marked: List[Any] = []

    @property
    def relation(self) -> Relation:
        return self.adapter.relation

    # ============== load state ==============

    @property
    def load_state(self) -> LoadState:
        return self._loader.state

    @property
    def loaded(self) -> bool:
        return self._loader.is_loaded

    def ensure_loaded(self) -> List[Any]:
        """Materialize the relation if it is still a ghost"""
        return self._loader.ensure_loaded()

    def get(self) -> List[Any]:
        """Live working set"""
        return self.ensure_loaded()

    def reload(self) -> "DeferredCollection":
        """Throw away unsaved changes; the next access re-reads the store"""
        self._loader.invalidate()
        self._marked = []
        logger.debug(f"Deferred relation {self.relation.name!r} of {self.parent!r} invalidated")
        return self

    reset = reload

    # ============== mutation ==============

    def replace(self, candidates: Optional[Iterable[Any]]) -> List[Any]:
        """
        Replace the whole working set

        The baseline is recomputed from the persisted state, so the diff is
        against what is committed now rather than against the previous working
        set. Unlink events fire for the new unlinks, then link events for the
        new links.
        """
        elements = [e for e in _flatten(candidates or []) if not _blank(e)]
        persisted = list(self.adapter.fetch_all())
        for element in elements:
            self._bind_inverse(element)

        working = self._loader.assign(elements, persisted)

        changes = self.changes()
        for element in changes.unlinks:
            self._unbind_inverse(element)
            self._callbacks.notify(LinkEvent.BEFORE_UNLINK, element)
            self._callbacks.notify(LinkEvent.AFTER_UNLINK, element)
        for element in changes.links:
            self._callbacks.notify(LinkEvent.BEFORE_LINK, element)
            self._callbacks.notify(LinkEvent.AFTER_LINK, element)
        return working

    def append(self, *elements: Any) -> "DeferredCollection":
        """Link one or more elements on the next save"""
        for element in _compact_unique(elements):
            self._callbacks.run_scoped(MutationKind.LINK, element, self._linker(element))
        return self

    extend = append

    def remove(self, *elements: Any) -> "DeferredCollection":
        """Unlink one or more elements on the next save; absent elements are ignored"""
        for element in _compact_unique(elements):
            self._callbacks.run_scoped(MutationKind.UNLINK, element, self._unlinker(element))
        return self

    def remove_and_mark(self, *targets: Any) -> List[Any]:
        """
        Unlink elements given as objects or ids

        Ids (int or numeric string) are looked up in the working set; ids not
        present and text that is not an id are skipped. With a destructive
        dependent policy the element is also marked for deletion on the next
        save.

        Returns:
            Elements actually processed
        """
        processed = []
        for target in _compact_unique(targets):
            element = self._resolve_target(target)
            if element is None:
                continue

            def mutation(element=element):
                self._unlinker(element)()
                if self.relation.dependent.destructive:
                    self._mark_for_destruction(element)

            self._callbacks.run_scoped(MutationKind.UNLINK, element, mutation)
            processed.append(element)
        return processed

    destroy = remove_and_mark

    def build(self, *args, **kwargs) -> Any:
        """Construct an unsaved element and link it"""
        element = self.relation.build(*args, **kwargs)
        self._callbacks.run_scoped(MutationKind.LINK, element, self._linker(element))
        return element

    def create(self, *args, **kwargs) -> CreateResult:
        """
        Create and persist an element immediately, bypassing deferral

        Returns:
            CreateResult carrying validation errors on failure
        """
        try:
            return self.adapter.create(*args, **kwargs)
        finally:
            self.reload()

    def create_or_fail(self, *args, **kwargs) -> Any:
        """Like create, raising ElementValidationError on failure"""
        try:
            return self.adapter.create_or_fail(*args, **kwargs)
        finally:
            self.reload()

    def clear(self) -> None:
        """Empty the working set (no callbacks)"""
        self.ensure_loaded().clear()

    def __setitem__(self, index, value) -> None:
        self.ensure_loaded()[index] = value

    def keep_if(self, predicate: Callable[[Any], bool]) -> "DeferredCollection":
        """Keep only matching elements in the working set (no callbacks)"""
        working = self.ensure_loaded()
        working[:] = [e for e in working if predicate(e)]
        return self

    def delete_if(self, predicate: Callable[[Any], bool]) -> "DeferredCollection":
        """Drop matching elements from the working set (no callbacks)"""
        return self.keep_if(lambda e: not predicate(e))

    def sort(self, key: Optional[Callable[[Any], Any]] = None, reverse: bool = False) -> "DeferredCollection":
        """Stable in-place sort of the working set"""
        self.ensure_loaded().sort(key=key, reverse=reverse)
        return self

    # ============== ids ==============

    def identifiers(self) -> List[Any]:
        """Ids of the working set elements, in order"""
        return [getattr(e, "id", None) for e in self.ensure_loaded()]

    ids = identifiers

    def set_identifiers(self, value: Union[None, str, int, Iterable[Any]]) -> List[Any]:
        """
        Replace the working set with the elements having the given ids

        Args:
            value: Ids, a delimited string ("1,2") or None

        Returns:
            The new working set
        """
        ids = parse_identifiers(value)
        return self.replace(self.adapter.resolve(ids) if ids else [])

    # ============== change set ==============

    def changes(self) -> ChangeSet:
        return ChangeSet.compute(self._loader.working, self._loader.baseline)

    def links(self) -> List[Any]:
        """Elements to be linked on the next save"""
        return self.changes().links

    def unlinks(self) -> List[Any]:
        """Elements to be unlinked on the next save"""
        return self.changes().unlinks

    @property
    def marked_for_destruction(self) -> List[Any]:
        """Elements to be deleted on the next save"""
        return list(self._marked)

    def has_pending_changes(self) -> bool:
        """True when the next save has anything to do for this relation"""
        return bool(self._marked) or self.changes().has_changes()

    def commit_baseline(self) -> None:
        """Accept the working set as persisted (called after a successful save)"""
        self._loader.rebaseline()
        self._marked = []

    # ============== callbacks ==============

    def register(self, event: Union[LinkEvent, str], handler: Listener) -> ListenerHandle:
        """Observe link/unlink mutations of this relation"""
        return self._callbacks.register(event, handler)

    @property
    def callbacks(self) -> CallbackRegistry:
        return self._callbacks

    # ============== lightweight reads ==============

    def size(self) -> int:
        if not self.loaded:
            return self.adapter.count()
        return len(self._loader.working)

    def first(self) -> Optional[Any]:
        if not self.loaded:
            return self.adapter.first()
        working = self._loader.working
        return working[0] if working else None

    def last(self) -> Optional[Any]:
        if not self.loaded:
            return self.adapter.last()
        working = self._loader.working
        return working[-1] if working else None

    def is_empty(self) -> bool:
        if not self.loaded:
            return self.adapter.is_empty()
        return not self._loader.working

    def count(self, predicate: Optional[Callable[[Any], bool]] = None) -> int:
        """
        Count elements

        With a predicate the working set is counted in memory; without one the
        store is asked (uncommitted changes are not reflected).
        """
        if predicate is not None:
            return sum(1 for e in self.ensure_loaded() if predicate(e))
        return self.adapter.count()

    def find(self, ident: Any) -> Any:
        """Persisted element of this relation by id"""
        return self.adapter.find(ident)

    def filter(self, predicate: Callable[[Any], bool]) -> List[Any]:
        """Matching working set elements (in memory)"""
        return [e for e in self.ensure_loaded() if predicate(e)]

    def where(self, *criteria: Any) -> List[Any]:
        """Matching persisted elements (store query, no materialization)"""
        return self.adapter.query(*criteria)

    def each_index(self) -> Iterator[int]:
        return iter(range(len(self.ensure_loaded())))

    def each_with_index(self) -> Iterator:
        return enumerate(list(self.ensure_loaded()))

    def to_list(self) -> List[Any]:
        return list(self.ensure_loaded())

    # ============== collection protocol ==============

    def __len__(self) -> int:
        return self.size()

    def __bool__(self) -> bool:
        return not self.is_empty()

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self.ensure_loaded()))

    def __getitem__(self, index):
        return self.ensure_loaded()[index]

    def __contains__(self, element: Any) -> bool:
        key = identity_key(element)
        return any(identity_key(e) == key for e in self.ensure_loaded())

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, DeferredCollection):
            other = other.to_list()
        if isinstance(other, (list, tuple)):
            return self.to_list() == list(other)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return repr(self.ensure_loaded())

    def __str__(self) -> str:
        return str(self.ensure_loaded())

    # ============== internals ==============

    def _bind_inverse(self, element: Any) -> None:
        if self.relation.declares_inverse:
            self.adapter.set_inverse(element, self.parent)

    def _unbind_inverse(self, element: Any) -> None:
        if self.relation.declares_inverse:
            self.adapter.clear_inverse(element, self.parent)

    def _linker(self, element: Any) -> Callable[[], None]:
        def mutation():
            working = self.ensure_loaded()
            self._bind_inverse(element)
            working.append(element)
        return mutation

    def _unlinker(self, element: Any) -> Callable[[], None]:
        def mutation():
            working = self.ensure_loaded()
            key = identity_key(element)
            if any(identity_key(e) == key for e in working):
                working[:] = [e for e in working if identity_key(e) != key]
                self._unbind_inverse(element)
        return mutation

    def _resolve_target(self, target: Any) -> Optional[Any]:
        if isinstance(target, str):
            target = target.strip()
            if not target.lstrip("-").isdigit():
                return None
            target = int(target)
        if isinstance(target, int) and not isinstance(target, bool):
            return next((e for e in self.ensure_loaded() if getattr(e, "id", None) == target), None)
        return target

    def _mark_for_destruction(self, element: Any) -> None:
        key = identity_key(element)
        if all(identity_key(e) != key for e in self._marked):
            self._marked.append(element)


__all__ = ["DeferredCollection"]
