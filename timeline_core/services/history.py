"""Undo/redo history for timeline commands.

The history runs every command itself and is the only thing that moves
commands between the undo and redo stacks. A single IDLE/BUSY state
rejects nested transitions: a command that calls back into the history
while it runs gets a no-op, not a queued call.
"""

import logging
from collections import deque
from enum import Enum
from typing import Protocol

from timeline_core.config import get_settings

logger = logging.getLogger(__name__)


class HistoryState(str, Enum):
    IDLE = "idle"
    BUSY = "busy"


class Reversible(Protocol):
    id: str
    description: str

    @property
    def type(self) -> str: ...

    def execute(self) -> None: ...

    def undo(self) -> None: ...


class History:
    """Capacity-bounded undo/redo stacks.

    Once more than ``capacity`` commands are on the undo stack the oldest
    entries are dropped and can never be undone again.
    """

    def __init__(self, capacity: int | None = None):
        self.capacity = capacity if capacity is not None else get_settings().history_capacity
        if self.capacity < 1:
            raise ValueError(f"History capacity must be positive, got {self.capacity}")
        self._undo: deque[Reversible] = deque(maxlen=self.capacity)
        self._redo: list[Reversible] = []
        self.state = HistoryState.IDLE
        self.total_executed = 0

    @property
    def is_busy(self) -> bool:
        return self.state is HistoryState.BUSY

    def _push_undo(self, command: Reversible) -> None:
        if len(self._undo) == self.capacity:
            evicted = self._undo[0]
            logger.debug(f"History full, evicting oldest command: {evicted.description}")
        self._undo.append(command)

    def _run(self, command: Reversible, action: str) -> bool:
        """Run one transition under the BUSY guard; errors are logged, not raised."""
        self.state = HistoryState.BUSY
        try:
            if action == "undo":
                command.undo()
            else:
                command.execute()
            return True
        except Exception:
            logger.exception(f"Command {action} failed: {command.type} ({command.description})")
            return False
        finally:
            self.state = HistoryState.IDLE

    # =========================================================================
    # Transitions
    # =========================================================================

    def execute(self, command: Reversible) -> bool:
        """Run a command and record it.

        Returns:
            True when the command ran and was recorded; False if the history
            was busy or the command raised (it is then not recorded)
        """
        if self.is_busy:
            logger.warning(f"Ignored execute while busy: {command.description}")
            return False
        if not self._run(command, "execute"):
            return False

        self._push_undo(command)
        self._redo.clear()
        self.total_executed += 1
        logger.debug(f"Executed {command.type}: {command.description}")
        return True

    def undo(self) -> bool:
        if self.is_busy or not self._undo:
            return False

        command = self._undo.pop()
        if not self._run(command, "undo"):
            return False

        self._redo.append(command)
        logger.debug(f"Undid {command.type}: {command.description}")
        return True

    def redo(self) -> bool:
        if self.is_busy or not self._redo:
            return False

        command = self._redo.pop()
        if not self._run(command, "execute"):
            return False

        self._push_undo(command)
        logger.debug(f"Redid {command.type}: {command.description}")
        return True

    def add_without_execute(self, command: Reversible) -> bool:
        """Record a command whose effect is already applied to the timeline."""
        if self.is_busy:
            logger.warning(f"Ignored external edit while busy: {command.description}")
            return False

        self._push_undo(command)
        self._redo.clear()
        self.total_executed += 1
        logger.debug(f"Recorded {command.type} without executing: {command.description}")
        return True

    # =========================================================================
    # Inspection
    # =========================================================================

    def can_undo(self) -> bool:
        return bool(self._undo) and not self.is_busy

    def can_redo(self) -> bool:
        return bool(self._redo) and not self.is_busy

    @property
    def undo_description(self) -> str | None:
        return self._undo[-1].description if self._undo else None

    @property
    def redo_description(self) -> str | None:
        return self._redo[-1].description if self._redo else None

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
        logger.debug("History cleared")
