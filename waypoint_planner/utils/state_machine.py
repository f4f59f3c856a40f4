"""
StateMachine - Drawing Interaction Mode Tracking

Provides mode management for the mission editor with transition
validation, entry/exit callbacks and transition history.
"""

import time
import logging
from enum import Enum
from typing import Optional, Callable, Dict, List, Set
from dataclasses import dataclass, field

from ..mission.entries import Placement

logger = logging.getLogger(__name__)


class InteractionState(Enum):
    """
    Interaction states of the editing session.

    Exactly one state is active at a time.
    """
    IDLE = "idle"                           # Nothing in progress
    TYPE_SELECTED = "type_selected"         # Draw type chosen, not drawing yet
    DRAWING = "drawing"                     # External draw tool registered
    REVIEWING_MISSION = "reviewing_mission" # Mission table shown
    REVIEWING_POLYGON = "reviewing_polygon" # Polygon table shown


class GeometryKind(Enum):
    """Geometry the draw tool captures."""
    LINE = "LineString"
    POLYGON = "Polygon"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            aliases = {"line": cls.LINE, "linestring": cls.LINE, "polygon": cls.POLYGON}
            return aliases.get(value.lower())
        return None


class ReviewOrigin(Enum):
    """Why the polygon review surface is open."""
    NORMAL = "normal"   # Freestanding polygon, nothing to import into
    BEFORE = "before"   # Pending splice before a waypoint
    AFTER = "after"     # Pending splice after a waypoint
    VIEW = "view"       # Existing polygon reference, read-only

    @classmethod
    def for_placement(cls, placement: Placement) -> "ReviewOrigin":
        return cls.BEFORE if placement is Placement.BEFORE else cls.AFTER


@dataclass(frozen=True)
class SpliceTarget:
    """Waypoint a polygon being drawn will be spliced next to."""
    index: int
    placement: Placement


@dataclass(frozen=True)
class InteractionMode:
    """Current state plus the data that state carries."""
    state: InteractionState
    kind: Optional[GeometryKind] = None
    target: Optional[SpliceTarget] = None
    origin: Optional[ReviewOrigin] = None

    @classmethod
    def idle(cls) -> "InteractionMode":
        return cls(InteractionState.IDLE)

    @classmethod
    def type_selected(cls, kind: GeometryKind) -> "InteractionMode":
        return cls(InteractionState.TYPE_SELECTED, kind=kind)

    @classmethod
    def drawing(cls, kind: GeometryKind, target: Optional[SpliceTarget] = None) -> "InteractionMode":
        return cls(InteractionState.DRAWING, kind=kind, target=target)

    @classmethod
    def reviewing_mission(cls) -> "InteractionMode":
        return cls(InteractionState.REVIEWING_MISSION)

    @classmethod
    def reviewing_polygon(cls, origin: ReviewOrigin,
                          target: Optional[SpliceTarget] = None) -> "InteractionMode":
        return cls(InteractionState.REVIEWING_POLYGON, kind=GeometryKind.POLYGON,
                   target=target, origin=origin)

    def describe(self) -> str:
        parts = [self.state.value]
        if self.kind is not None:
            parts.append(self.kind.value)
        if self.target is not None:
            parts.append(f"{self.target.placement.value}:{self.target.index}")
        if self.origin is not None:
            parts.append(self.origin.value)
        return "/".join(parts)


@dataclass
class StateTransition:
    """Record of a mode transition."""
    from_mode: InteractionMode
    to_mode: InteractionMode
    timestamp: float
    reason: str


class StateMachine:
    """
    Interaction state machine with transition validation and callbacks.

    Tracks the current mode, validates transitions between states, and
    triggers callbacks on entering and leaving states.
    """

    # Valid state transitions (from_state -> set of valid to_states)
    VALID_TRANSITIONS: Dict[InteractionState, Set[InteractionState]] = {
        InteractionState.IDLE: {
            InteractionState.TYPE_SELECTED
        },
        InteractionState.TYPE_SELECTED: {
            InteractionState.TYPE_SELECTED,
            InteractionState.DRAWING,
            InteractionState.IDLE
        },
        InteractionState.DRAWING: {
            InteractionState.REVIEWING_MISSION,
            InteractionState.REVIEWING_POLYGON,
            InteractionState.IDLE
        },
        InteractionState.REVIEWING_MISSION: {
            InteractionState.DRAWING,
            InteractionState.REVIEWING_POLYGON,
            InteractionState.TYPE_SELECTED,
            InteractionState.IDLE
        },
        InteractionState.REVIEWING_POLYGON: {
            InteractionState.REVIEWING_MISSION,
            InteractionState.IDLE
        }
    }

    def __init__(self, initial_mode: InteractionMode = None):
        """
        Initialize StateMachine.

        Args:
            initial_mode: Initial interaction mode (default: idle)
        """
        self.current_mode = initial_mode or InteractionMode.idle()
        self.previous_mode: Optional[InteractionMode] = None
        self.state_entered_time = time.time()

        # Transition history
        self.history: List[StateTransition] = []
        self.max_history = 100

        # Callbacks
        self.on_state_change: Optional[Callable[[InteractionMode, InteractionMode, str], None]] = None
        self.state_callbacks: Dict[InteractionState, List[Callable[[], None]]] = {}
        self.exit_callbacks: Dict[InteractionState, List[Callable[[], None]]] = {}

        logger.info(f"StateMachine initialized in {self.current_mode.describe()} mode")

    @property
    def current_state(self) -> InteractionState:
        return self.current_mode.state

    def transition_to(self, new_mode: InteractionMode, reason: str = "") -> bool:
        """
        Attempt to transition to a new mode.

        Args:
            new_mode: Target mode
            reason: Reason for transition (for logging)

        Returns:
            True if transition successful, False if invalid
        """
        valid_targets = self.VALID_TRANSITIONS.get(self.current_state, set())

        if new_mode.state not in valid_targets:
            logger.warning(f"Invalid transition: {self.current_mode.describe()} -> "
                           f"{new_mode.describe()}")
            return False

        self._apply(new_mode, reason)

        logger.info(f"Mode transition: {self.previous_mode.describe()} -> {new_mode.describe()}"
                   + (f" ({reason})" if reason else ""))
        return True

    def force_mode(self, new_mode: InteractionMode, reason: str = "FORCED"):
        """
        Force transition to a mode regardless of validity.

        Exit callbacks still run, so resources tied to the old state are
        released.

        Args:
            new_mode: Target mode
            reason: Reason for forced transition
        """
        logger.warning(f"FORCED mode transition: {self.current_mode.describe()} -> "
                       f"{new_mode.describe()}")
        self._apply(new_mode, f"FORCED: {reason}")

    def _apply(self, new_mode: InteractionMode, reason: str):
        old_mode = self.current_mode
        leaving = old_mode.state is not new_mode.state

        transition = StateTransition(
            from_mode=old_mode,
            to_mode=new_mode,
            timestamp=time.time(),
            reason=reason
        )

        self.history.append(transition)
        if len(self.history) > self.max_history:
            self.history.pop(0)

        if leaving:
            self._run_callbacks(self.exit_callbacks.get(old_mode.state, []), "exit")

        # Update mode
        self.previous_mode = old_mode
        self.current_mode = new_mode
        self.state_entered_time = time.time()

        if self.on_state_change:
            try:
                self.on_state_change(old_mode, new_mode, reason)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

        if leaving:
            self._run_callbacks(self.state_callbacks.get(new_mode.state, []), "entry")

    @staticmethod
    def _run_callbacks(callbacks: List[Callable[[], None]], label: str):
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"State {label} callback error: {e}")

    def get_mode(self) -> InteractionMode:
        """Get current mode."""
        return self.current_mode

    def get_state_name(self) -> str:
        """Get current state name as string."""
        return self.current_state.value

    def is_in(self, *states: InteractionState) -> bool:
        """
        Check if current state is one of the given states.

        Args:
            *states: States to check against

        Returns:
            True if current state matches any of the given states
        """
        return self.current_state in states

    def time_in_state(self) -> float:
        """Get time spent in current mode in seconds."""
        return time.time() - self.state_entered_time

    def can_transition_to(self, state: InteractionState) -> bool:
        """
        Check if transition to given state is valid.

        Args:
            state: Target state to check

        Returns:
            True if transition would be valid
        """
        valid_targets = self.VALID_TRANSITIONS.get(self.current_state, set())
        return state in valid_targets

    def register_callback(self, state: InteractionState, callback: Callable[[], None]):
        """
        Register a callback to be called when entering a specific state.

        Args:
            state: State to trigger callback on
            callback: Function to call
        """
        self.state_callbacks.setdefault(state, []).append(callback)

    def register_exit_callback(self, state: InteractionState, callback: Callable[[], None]):
        """
        Register a callback to be called on every transition out of a state.

        Args:
            state: State being left
            callback: Function to call
        """
        self.exit_callbacks.setdefault(state, []).append(callback)

    def get_history(self, last_n: int = None) -> List[StateTransition]:
        """
        Get transition history.

        Args:
            last_n: Optional limit on number of entries

        Returns:
            List of StateTransition objects
        """
        if last_n:
            return self.history[-last_n:]
        return self.history.copy()

    def reset(self):
        """Reset state machine to IDLE, running exit callbacks of the current state."""
        if self.current_state is not InteractionState.IDLE:
            self._run_callbacks(self.exit_callbacks.get(self.current_state, []), "exit")
        self.current_mode = InteractionMode.idle()
        self.previous_mode = None
        self.state_entered_time = time.time()
        self.history.clear()
        logger.info("StateMachine reset to IDLE")
