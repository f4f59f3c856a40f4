"""
DrawTool - Map Engine Boundary

Describes what the editor needs from the map rendering engine and holds
the engine registrations of one drawing session as a single lease.
"""

import logging
from contextlib import ExitStack
from functools import partial
from typing import Any, Callable, Optional, Protocol, Sequence

from ..utils.state_machine import GeometryKind

logger = logging.getLogger(__name__)

DrawCompleteCallback = Callable[[Any, Sequence], None]
KeyCallback = Callable[[Any, str], None]


class MapEngine(Protocol):
    """Map rendering engine hosting the geometry capture tool."""

    def register_draw_tool(self, kind: GeometryKind,
                           on_complete: DrawCompleteCallback) -> Any:
        """Start capturing ``kind``; ``on_complete(handle, coords)`` fires when done."""

    def deregister_draw_tool(self, handle: Any) -> None:
        """Stop capturing and discard any in-progress geometry."""

    def add_key_listener(self, on_key: Callable[[str], None]) -> Any:
        """Deliver key presses to ``on_key(key)``; returns a removal token."""

    def remove_key_listener(self, token: Any) -> None:
        """Stop delivering key presses for ``token``."""


class DrawToolLease:
    """
    Draw tool and key listener registered for one drawing session.

    Both registrations are taken together and given back together; a
    failure half way through acquisition undoes the part already taken.
    Releasing twice is harmless.
    """

    def __init__(self, engine: MapEngine, kind: GeometryKind,
                 on_complete: DrawCompleteCallback, on_key: KeyCallback):
        self.engine = engine
        self.kind = kind
        self.on_complete = on_complete
        self.on_key = on_key

        self.handle: Any = None
        self.key_token: Any = None
        self._stack: Optional[ExitStack] = None

    @property
    def active(self) -> bool:
        return self._stack is not None

    def acquire(self) -> "DrawToolLease":
        """
        Register the draw tool and key listener with the engine.

        Returns:
            self, for chaining
        """
        if self.active:
            return self

        with ExitStack() as stack:
            self.handle = self.engine.register_draw_tool(self.kind, self.on_complete)
            stack.callback(self.engine.deregister_draw_tool, self.handle)

            self.key_token = self.engine.add_key_listener(partial(self.on_key, self.handle))
            stack.callback(self.engine.remove_key_listener, self.key_token)

            self._stack = stack.pop_all()

        logger.debug(f"Draw tool {self.kind.value} registered (handle {self.handle!r})")
        return self

    def release(self):
        """Deregister the key listener and draw tool."""
        if self._stack is None:
            return
        stack, self._stack = self._stack, None
        stack.close()
        logger.debug(f"Draw tool {self.kind.value} deregistered (handle {self.handle!r})")

    def __enter__(self) -> "DrawToolLease":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
