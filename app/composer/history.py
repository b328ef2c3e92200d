from __future__ import annotations

from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class HistoryStack(Generic[T]):
    """Linear undo/redo log with a cursor on the current entry.

    Pushing while the cursor is behind the newest entry discards the redo
    branch. When ``limit`` is exceeded the oldest entry is dropped.
    """

    def __init__(self, initial: T, limit: int = 50) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.entries: List[T] = [initial]
        self.cursor = 0
        self.limit = limit

    def push(self, entry: T) -> None:
        del self.entries[self.cursor + 1 :]
        self.entries.append(entry)
        if len(self.entries) > self.limit:
            del self.entries[: len(self.entries) - self.limit]
        self.cursor = len(self.entries) - 1

    def undo(self) -> Optional[T]:
        if not self.can_undo():
            return None
        self.cursor -= 1
        return self.entries[self.cursor]

    def redo(self) -> Optional[T]:
        if not self.can_redo():
            return None
        self.cursor += 1
        return self.entries[self.cursor]

    def can_undo(self) -> bool:
        return self.cursor > 0

    def can_redo(self) -> bool:
        return self.cursor < len(self.entries) - 1

    @property
    def current(self) -> T:
        return self.entries[self.cursor]

    def __len__(self) -> int:
        return len(self.entries)
