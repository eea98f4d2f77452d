"""
Installation-scoped durable key/value storage backed by a JSON file
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.serialization import to_jsonable

logger = logging.getLogger(__name__)


class JsonFileKeyValueStore:
    """
    Key/value facility persisted as one JSON document.

    Reads are served from an in-memory mirror loaded at construction. Writes
    flush the whole document to disk in the default executor and then swap
    it into the mirror; writes are serialized so each one builds on the last.
    """

    def __init__(self, path: str):
        """
        Args:
            path: Location of the state file; parent directories are created
        """
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._data: Dict[str, Any] = self._load()
        self._write_lock: Optional[asyncio.Lock] = None

        # Persistence state
        self.save_count = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    async def put(self, key: str, value: Any) -> None:
        """
        Store ``value`` under ``key``; ``None`` removes the key.

        The mirror only changes once the document is on disk, so a failed
        write leaves both untouched.
        """
        remove = value is None
        stored = None if remove else to_jsonable(value)

        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        async with self._write_lock:
            data = dict(self._data)
            if remove:
                data.pop(key, None)
            else:
                data[key] = stored
            snapshot = json.dumps(data, indent=2, ensure_ascii=False)

            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._write, snapshot)
            self._data = data
        self.save_count += 1

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            corrupt_path = self.path.with_name(self.path.name + ".corrupt")
            logger.error("Could not read state file %s (%s), moving it to %s",
                         self.path, e, corrupt_path)
            try:
                os.replace(self.path, corrupt_path)
            except OSError:
                logger.exception("Could not move corrupt state file aside")
            return {}

        if not isinstance(data, dict):
            logger.error("State file %s does not hold an object, ignoring it", self.path)
            return {}

        logger.debug("Loaded %d keys from %s", len(data), self.path)
        return data

    def _write(self, snapshot: str) -> None:
        temp_path = self.path.with_name(self.path.name + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(snapshot)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, self.path)

    def get_storage_info(self) -> Dict[str, Any]:
        """Get information about the state file"""
        return {
            "path": str(self.path),
            "exists": self.path.exists(),
            "size_bytes": self.path.stat().st_size if self.path.exists() else 0,
            "keys": self.keys(),
            "save_count": self.save_count,
        }
