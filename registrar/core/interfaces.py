"""
Core interfaces and abstract base classes.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from .entities import Record
from .enums import EntityKind, WriteAction

if TYPE_CHECKING:
    from ..persistence.dispatcher import QueryDispatcher


class WriteHook(ABC):
    """
    Abstract base class for post-write hooks.

    Hooks run inside the transaction of the write that triggered them; an
    exception raised by a hook rolls that write back.
    """

    @abstractmethod
    def can_handle(self, kind: EntityKind) -> bool:
        """Check if this hook reacts to writes on the entity kind."""
        pass

    @abstractmethod
    def after_write(self, dispatcher: "QueryDispatcher", action: WriteAction,
                    record: Record, previous: Optional[Record]) -> None:
        """
        React to a completed write.

        ``record`` is the row as written (for deletes, the row as it was);
        ``previous`` is the stored row before an update or delete.
        """
        pass


class Clock(ABC):
    """Source of the current time, replaceable in tests."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now()
