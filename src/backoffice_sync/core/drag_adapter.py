"""Translate platform drag events into reorder controller calls."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from .reorder_session import ReorderController

logger = logging.getLogger(__name__)


class DragEventAdapter:
    """Thin adapter for DOM-style drag events.

    ``dispatch("dragstart", id)``, ``dispatch("dragover", id)``,
    ``dispatch("drop", id)`` and ``dispatch("dragend")`` map onto the
    controller. Unknown event types are ignored. As in a browser, ``drop``
    fires before ``dragend`` and both are safe to deliver.
    """

    def __init__(self, controller: ReorderController):
        self.controller = controller
        self._handlers: Dict[str, Callable[[Any], Any]] = {
            "dragstart": controller.drag_start,
            "dragover": controller.drag_over,
            "dragenter": controller.drag_over,
            "drop": controller.drop,
            "dragend": lambda _item_id: controller.drag_end(),
        }

    def dispatch(self, event_type: str, item_id: Any = None) -> Any:
        handler = self._handlers.get(event_type.lower())
        if handler is None:
            logger.debug("Ignoring unsupported drag event '%s'", event_type)
            return None
        return handler(item_id)

    def click_allowed(self) -> bool:
        """Clicks that open an item editor are suppressed while a drag is active."""
        return self.controller.source_id is None


__all__ = ["DragEventAdapter"]
