"""Çalıştırma log tamponu - geliş sırasına göre yalnızca-ekle dizi."""

from __future__ import annotations

from typing import Iterator

from src.models.supply_chain import LogEntry


class LogBuffer:
    """Geçerli çalıştırmanın log satırları.

    Girdiler değişmez (frozen) ve geliş sırasıyla tutulur; tampon yalnızca
    yeni bir çalıştırmanın başında temizlenir.
    """

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def clear(self) -> None:
        self._entries = []

    def entries(self) -> tuple[LogEntry, ...]:
        """Görünüm için anlık kopya."""
        return tuple(self._entries)

    def messages(self) -> list[str]:
        return [e.message for e in self._entries]

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self.entries())
