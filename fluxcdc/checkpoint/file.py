"""JSON file implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Dict

from pydantic import ValidationError

from ..contracts import Watermark
from ..errors import CheckpointError
from .store import CheckpointStore


class FileCheckpointStore(CheckpointStore):
    """Persist watermarks as a JSON document mapping name to watermark.

    Writes go to a sibling temp file that is then renamed over the target,
    so a crash leaves either the old or the new checkpoint on disk.
    """

    def __init__(self, path: str | Path, name: str = "default") -> None:
        self.path = Path(path)
        self.name = name

    def _read_all(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text() or "{}")
        except json.JSONDecodeError as exc:
            raise CheckpointError(f"Corrupt checkpoint file {self.path}: {exc}") from exc

    def _write_all(self, data: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2))
        os.replace(tmp_path, self.path)

    def _load(self) -> Watermark | None:
        entry = self._read_all().get(self.name)
        if entry is None:
            return None
        try:
            return Watermark.model_validate(entry)
        except ValidationError as exc:
            raise CheckpointError(f"Invalid checkpoint {self.name}: {exc}") from exc

    def _save(self, watermark: Watermark) -> None:
        data = self._read_all()
        data[self.name] = watermark.model_dump(mode="json")
        self._write_all(data)

    def _reset(self) -> None:
        data = self._read_all()
        if data.pop(self.name, None) is not None:
            self._write_all(data)

    async def load(self) -> Watermark | None:
        return await asyncio.to_thread(self._load)

    async def save(self, watermark: Watermark) -> None:
        await asyncio.to_thread(self._save, watermark)

    async def reset(self) -> None:
        await asyncio.to_thread(self._reset)

    async def close(self) -> None:
        pass
