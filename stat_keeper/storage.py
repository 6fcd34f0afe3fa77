import os
import json
import logging
import threading

from .utils import ensure_dir


class KeyValueStore:
    """Durable key-value storage: one JSON document per key inside ``directory``."""

    def __init__(self, directory: str, logger: logging.Logger):
        self._dir = directory
        self._logger = logger
        self._lock = threading.Lock()

    def path_for(self, key: str) -> str:
        return os.path.join(self._dir, f"{key}.json")

    def get(self, key: str):
        path = self.path_for(key)
        if not os.path.exists(path):
            return None
        try:
            with self._lock:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
        except Exception:
            self._logger.exception(f"STORE read failed key={key}")
            return None

    def set(self, key: str, value) -> bool:
        try:
            ensure_dir(self._dir)
            data = json.dumps(value, indent=2, ensure_ascii=False)
            with self._lock:
                with open(self.path_for(key), "w", encoding="utf-8") as f:
                    f.write(data)
            return True
        except Exception:
            self._logger.exception(f"STORE write failed key={key}")
            return False
