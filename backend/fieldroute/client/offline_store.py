"""Local JSON key-value file used by the field client."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from fieldroute.utils.logging import get_logger

logger = get_logger("client.offline_store")


class OfflineStore:
    """Whole-file JSON store; every write replaces the file atomically."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            # Keep the unreadable file for inspection instead of overwriting it.
            corrupt = self.path.with_name(self.path.name + ".corrupt")
            os.replace(self.path, corrupt)
            logger.error("offline_store_corrupt", path=str(self.path), moved_to=str(corrupt), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.error("offline_store_unexpected_shape", path=str(self.path))
            return {}
        return data

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self.load()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self.load()
        if data.pop(key, None) is not None:
            self._write(data)

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, default=str)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
