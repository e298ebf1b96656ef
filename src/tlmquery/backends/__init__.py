"""
Backend capabilities the engine depends on.

Only the shapes below matter; concrete clients live in `sqlite` (ground test-run
files) and `bigquery` (orbit warehouse).
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Protocol


class WarehouseClient(Protocol):
    def query(self, text: str) -> Iterable[Mapping[str, Any]]: ...

    def close(self) -> None: ...


class FileDatabase(Protocol):
    def all(self, query: str) -> list[Mapping[str, Any]]: ...

    def close(self) -> None: ...


WarehouseFactory = Callable[[], WarehouseClient]
DatabaseOpener = Callable[[str], FileDatabase]
