"""
Per-cell edit state machine.

Each ``(row identity, field key)`` pair moves through
``idle -> saving -> success | error``. Success falls back to idle after a
fixed display window; error stays until the next edit starts. The editor
never patches row data: after a successful write the caller re-fetches.
"""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from .exceptions import ValterError

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_WINDOW_SECONDS = 2.0

CellKey = Tuple[str, str]

# (row identity, field key, new value); raises ValterError on failure
FieldWriter = Callable[[str, str, str], object]


class CellPhase(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CellEditState:
    phase: CellPhase = CellPhase.IDLE
    pending_value: Optional[str] = None
    error_message: Optional[str] = None
    changed_at: float = 0.0


IDLE_STATE = CellEditState()


class CellEditor:
    """Owns the transient edit state of every cell in one detail view."""

    def __init__(self, writer: FieldWriter,
                 display_window: float = DEFAULT_DISPLAY_WINDOW_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.writer = writer
        self.display_window = display_window
        self.clock = clock
        self._states: Dict[CellKey, CellEditState] = {}

    def state(self, row_id: str, key: str) -> CellEditState:
        """Current state of a cell, expiring a finished success window."""
        cell = (row_id, key)
        current = self._states.get(cell, IDLE_STATE)
        if (current.phase == CellPhase.SUCCESS
                and self.clock() - current.changed_at >= self.display_window):
            self._states.pop(cell, None)
            return IDLE_STATE
        return current

    def is_saving(self, row_id: str, key: str) -> bool:
        return self.state(row_id, key).phase == CellPhase.SAVING

    def begin_edit(self, row_id: str, key: str, editable: bool) -> bool:
        """
        Enter edit mode on a cell.

        Returns:
            False when the cell is read-only or already saving
        """
        if not editable:
            return False
        if self.is_saving(row_id, key):
            logger.debug(f"Edit refused, {row_id}.{key} is saving")
            return False
        self._states.pop((row_id, key), None)
        return True

    def set_pending(self, row_id: str, key: str, value: str) -> None:
        cell = (row_id, key)
        current = self.state(row_id, key)
        if current.phase == CellPhase.SAVING:
            return
        self._states[cell] = replace(current, pending_value=value)

    def commit(self, row_id: str, key: str, new_value: str, committed_value: str,
               editable: bool = True) -> CellEditState:
        """
        Commit an edit, writing it through when the value changed.

        An unchanged value issues no request. A failed write keeps the
        value for correction; there is no automatic retry.
        """
        cell = (row_id, key)
        if not editable:
            logger.warning(f"Commit ignored for read-only cell {row_id}.{key}")
            return self.state(row_id, key)
        if self.is_saving(row_id, key):
            logger.debug(f"Commit ignored, {row_id}.{key} is already saving")
            return self.state(row_id, key)

        if new_value == committed_value:
            self._states.pop(cell, None)
            return IDLE_STATE

        self._states[cell] = CellEditState(CellPhase.SAVING, new_value, None, self.clock())
        try:
            self.writer(row_id, key, new_value)
        except ValterError as e:
            logger.error(f"Saving {row_id}.{key} failed: {e}", exc_info=True)
            self._states[cell] = CellEditState(CellPhase.ERROR, new_value, str(e), self.clock())
        else:
            logger.info(f"Saved {row_id}.{key}")
            self._states[cell] = CellEditState(CellPhase.SUCCESS, None, None, self.clock())
        return self._states[cell]

    def cancel(self, row_id: str, key: str) -> CellEditState:
        """Discard the pending value without issuing a request."""
        if self.is_saving(row_id, key):
            return self.state(row_id, key)
        self._states.pop((row_id, key), None)
        return IDLE_STATE

    def clear(self) -> None:
        self._states.clear()
