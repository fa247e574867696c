# bikeparts/services/local_storage.py
"""Async key-value storage for the cart snapshot and the cached user profile."""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class LocalStorage:
    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(LocalStorage):
    def __init__(self):
        self.data: Dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value

    async def remove(self, key):
        self.data.pop(key, None)


class JsonFileStorage(LocalStorage):
    """One file per key under `root`."""

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.root / f"{safe}.json"

    async def get(self, key):
        path = self._path(key)

        def _read() -> Optional[str]:
            if not path.is_file():
                return None
            return path.read_text(encoding="utf-8")

        return await run_in_threadpool(_read)

    async def set(self, key, value):
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)

        await run_in_threadpool(_write)

    async def remove(self, key):
        await run_in_threadpool(self._path(key).unlink, missing_ok=True)


# --- best-effort helpers: failures are logged, never raised -------------------
async def load_json(storage: LocalStorage, key: str) -> Any:
    try:
        raw = await storage.get(key)
        return json.loads(raw) if raw else None
    except Exception:
        logger.warning("could not read %r from local storage", key, exc_info=True)
        return None


async def save_json(storage: LocalStorage, key: str, value: Any) -> bool:
    try:
        await storage.set(key, json.dumps(value))
        return True
    except Exception:
        logger.warning("could not write %r to local storage", key, exc_info=True)
        return False


async def discard(storage: LocalStorage, key: str) -> bool:
    try:
        await storage.remove(key)
        return True
    except Exception:
        logger.warning("could not remove %r from local storage", key, exc_info=True)
        return False
