# core/store.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Sequence, Union

from core.models import Thread, threads_from_json, threads_to_json
from core.reconciler import serialize_threads

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the persisted thread record exists but cannot be read."""


class ThreadStore:
    """
    Restart-safe record of mirrored threads.

    The file is a JSON array of threads, each a JSON array of post objects. It is only
    ever replaced wholesale: writes go to a temp file in the same directory and are moved
    into place with os.replace, so a crash mid-write leaves the previous record intact.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[Thread]:
        if not self.path.exists():
            logger.info("Thread store %s not found; creating an empty one.", self.path)
            self.save([])
            return []

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return threads_from_json(data)
        except (OSError, ValueError) as e:
            raise StoreError(f"Could not read thread store {self.path}: {e}") from e

    def save(self, threads: Sequence[Thread]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.stem}.", suffix=".json.tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(threads_to_json(list(threads)), f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)  # atomic on POSIX
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)
        logger.info("Saved %d thread(s) to %s", len(threads), self.path)

    def compare_and_swap(self, expected: Sequence[Thread], new: Sequence[Thread]) -> bool:
        """
        Replace the record with `new` only if it still matches `expected`.

        Returns False (and leaves the file alone) if someone else changed it since
        `expected` was loaded.
        """
        current = self.load()
        if serialize_threads(current) != serialize_threads(expected):
            logger.error("Thread store %s changed since it was loaded; refusing to overwrite.", self.path)
            return False
        self.save(new)
        return True

    @staticmethod
    def serialize(threads: Sequence[Thread]) -> str:
        return serialize_threads(threads)
