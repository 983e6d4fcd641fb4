"""Append-only record sinks."""

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, List, Protocol

if TYPE_CHECKING:
    from harvester.core.harvesting.models import Record


class RecordSink(Protocol):
    """Accepts one record at a time; no read-back."""

    async def append(self, record: "Record") -> None: ...


class JsonLinesSink:
    """Write each record as one JSON line, serializing concurrent appends."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def append(self, record: "Record") -> None:
        line = json.dumps(record.to_json_dict(), ensure_ascii=False)
        async with self._lock:
            await asyncio.to_thread(self._write_line, line)

    def _write_line(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")


class MemorySink:
    """Keep records in a list (tests, library use)."""

    def __init__(self) -> None:
        self.records: List["Record"] = []

    async def append(self, record: "Record") -> None:
        self.records.append(record)
