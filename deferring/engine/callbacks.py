"""
deferring/engine/callbacks.py

Callback registry - ordered listeners notified around each link/unlink
mutation of one deferred relation.

Unlike a publish/subscribe bus, listener failures are NOT isolated: a failing
before-listener aborts the mutation, a failing after-listener propagates after
the mutation has been applied.
"""
from typing import Any, Callable, Dict, List, Optional, Protocol, Union
from dataclasses import dataclass, field
from enum import Enum
import logging
import itertools

logger = logging.getLogger(__name__)


class LinkEvent(str, Enum):
    """Mutation boundaries a listener can observe"""
    BEFORE_LINK = "before_link"
    AFTER_LINK = "after_link"
    BEFORE_UNLINK = "before_unlink"
    AFTER_UNLINK = "after_unlink"

    @classmethod
    def coerce(cls, value: Union["LinkEvent", str]) -> "LinkEvent":
        """Accept the enum or its string value"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Unknown event kind {value!r}, expected one of {[e.value for e in cls]}"
            ) from None


class MutationKind(str, Enum):
    """Scoped mutation kinds"""
    LINK = "link"
    UNLINK = "unlink"

    @property
    def before(self) -> LinkEvent:
        return LinkEvent(f"before_{self.value}")

    @property
    def after(self) -> LinkEvent:
        return LinkEvent(f"after_{self.value}")


class Listener(Protocol):
    """Listener protocol"""

    def __call__(self, element: Any) -> None:
        ...


_handle_ids = itertools.count(1)


@dataclass(eq=False)
class ListenerHandle:
    """
    Registration returned by CallbackRegistry.register

    Attributes:
        event: Observed event kind
        handler: Callable receiving the element
        handle_id: Sequence number, unique per process
    """

    event: LinkEvent
    handler: Listener
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    _registry: Optional["CallbackRegistry"] = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._registry is not None and self._registry.is_registered(self)

    def cancel(self) -> None:
        """Stop receiving notifications"""
        if self._registry is not None:
            self._registry.unregister(self)


class CallbackRegistry:
    """
    Per-relation listener list

    Example:
        >>> registry = CallbackRegistry()
        >>> handle = registry.register("before_link", lambda team: print(team))
        >>> registry.run_scoped("link", team, lambda: teams.append(team))
        >>> handle.cancel()
    """

    def __init__(self):
        self._listeners: Dict[LinkEvent, List[ListenerHandle]] = {event: [] for event in LinkEvent}

    def register(self, event: Union[LinkEvent, str], handler: Listener) -> ListenerHandle:
        """
        Register a listener

        Args:
            event: Event kind (enum or "before_link" style string)
            handler: Callable receiving the element

        Returns:
            ListenerHandle owned by this registry
        """
        if not callable(handler):
            raise TypeError(f"Listener for {event!r} must be callable")
        kind = LinkEvent.coerce(event)
        handle = ListenerHandle(event=kind, handler=handler, _registry=self)
        self._listeners[kind].append(handle)
        logger.debug(f"Listener {getattr(handler, '__name__', handler)!r} registered for {kind.value}")
        return handle

    def unregister(self, handle: ListenerHandle) -> bool:
        """
        Remove a registration

        Returns:
            True if the handle was registered here
        """
        handles = self._listeners.get(handle.event, [])
        if handle in handles:
            handles.remove(handle)
            return True
        return False

    def is_registered(self, handle: ListenerHandle) -> bool:
        return handle in self._listeners.get(handle.event, [])

    def listeners(self, event: Union[LinkEvent, str]) -> List[ListenerHandle]:
        """Registrations for ``event`` in registration order"""
        return list(self._listeners[LinkEvent.coerce(event)])

    def notify(self, event: Union[LinkEvent, str], element: Any) -> None:
        """Call every listener of ``event`` in registration order"""
        for handle in self.listeners(event):
            handle.handler(element)

    def run_scoped(self, kind: Union[MutationKind, str], element: Any, mutation: Callable[[], Any]) -> Any:
        """
        Run ``mutation`` bracketed by before/after notifications

        Args:
            kind: "link" or "unlink"
            element: Element being linked or unlinked
            mutation: Zero-argument callable applying the change

        Returns:
            Whatever ``mutation`` returns
        """
        kind = MutationKind(kind)
        self.notify(kind.before, element)
        result = mutation()
        self.notify(kind.after, element)
        return result

    def clear(self) -> None:
        """Drop every registration"""
        for handles in self._listeners.values():
            handles.clear()


__all__ = [
    "LinkEvent",
    "MutationKind",
    "Listener",
    "ListenerHandle",
    "CallbackRegistry",
]
