"""
deferring/engine/load_state.py

Load state machine - governs when the working set is materialized.

    GHOST --load/assign--> LOADED --invalidate--> GHOST

While GHOST there is no working set and no baseline. The transition to LOADED
fetches from the source adapter exactly once.
"""
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple
from enum import Enum
import logging

from deferring.engine.snapshot import Baseline
from deferring.errors import InvalidTransitionError

if TYPE_CHECKING:
    from deferring.adapter import SourceAdapter

logger = logging.getLogger(__name__)


class LoadState(str, Enum):
    """Lazy materialization state"""
    GHOST = "ghost"      # nothing materialized
    LOADED = "loaded"    # working set and baseline present


# (from_state, trigger) -> to_state
TRANSITIONS: Dict[Tuple[LoadState, str], LoadState] = {
    (LoadState.GHOST, "load"): LoadState.LOADED,
    (LoadState.GHOST, "assign"): LoadState.LOADED,
    (LoadState.LOADED, "assign"): LoadState.LOADED,
    (LoadState.LOADED, "rebaseline"): LoadState.LOADED,
    (LoadState.GHOST, "invalidate"): LoadState.GHOST,
    (LoadState.LOADED, "invalidate"): LoadState.GHOST,
}


class LoadStateMachine:
    """
    Owns the working set and baseline of one relation

    Example:
        >>> machine = LoadStateMachine(adapter)
        >>> machine.ensure_loaded()   # one adapter.fetch_all()
        >>> machine.ensure_loaded()   # no fetch
        >>> machine.invalidate()      # adapter.reload(), back to GHOST
    """

    def __init__(self, adapter: "SourceAdapter"):
        self._adapter = adapter
        self._state = LoadState.GHOST
        self._working: Optional[List[Any]] = None
        self._baseline: Optional[Baseline] = None
        self._load_count = 0

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state == LoadState.LOADED

    @property
    def working(self) -> Optional[List[Any]]:
        """Live working set, ``None`` while GHOST"""
        return self._working

    @property
    def baseline(self) -> Optional[Baseline]:
        """Baseline snapshot, ``None`` while GHOST"""
        return self._baseline

    @property
    def load_count(self) -> int:
        """Number of GHOST -> LOADED fetches performed"""
        return self._load_count

    def ensure_loaded(self) -> List[Any]:
        """
        Materialize the relation if GHOST

        Returns:
            The live working set
        """
        if self.is_loaded:
            return self._working

        elements = list(self._adapter.fetch_all())
        self._transition("load")
        self._working = list(elements)
        self._baseline = Baseline.capture(elements)
        self._load_count += 1
        logger.debug(f"Loaded {len(elements)} elements from {self._adapter!r}")
        return self._working

    def assign(self, working: Iterable[Any], baseline: Iterable[Any]) -> List[Any]:
        """
        Install a working set and a baseline and mark LOADED

        Args:
            working: New working set contents
            baseline: Currently persisted elements

        Returns:
            The live working set
        """
        self._transition("assign")
        self._working = list(working)
        self._baseline = Baseline.capture(baseline)
        return self._working

    def rebaseline(self) -> None:
        """Freeze the current working set as baseline; no fetch"""
        if not self.is_loaded:
            return
        self._transition("rebaseline")
        self._baseline = Baseline.capture(self._working)

    def invalidate(self) -> None:
        """Reload the adapter and drop back to GHOST; no fetch"""
        self._adapter.reload()
        self._transition("invalidate")
        self._working = None
        self._baseline = None

    def _transition(self, trigger: str) -> None:
        target = TRANSITIONS.get((self._state, trigger))
        if target is None:
            raise InvalidTransitionError(
                f"Invalid transition: {self._state.value} (trigger: {trigger})"
            )
        if target != self._state:
            logger.debug(f"Load state transition: {self._state.value} -> {target.value} (trigger: {trigger})")
        self._state = target


__all__ = ["LoadState", "TRANSITIONS", "LoadStateMachine"]
