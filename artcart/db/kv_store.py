# artcart/db/kv_store.py
"""
Durable local key-value storage for the cart engine.

Values are opaque strings (the engine stores JSON in them). The file-backed
store keeps a two-column CSV table (key, value) and takes a file lock around
each individual read and write, so a write never leaves a torn file. There is
no locking across a read-modify-write cycle: whoever writes last wins.

Usage:
    store = FileKeyValueStore(Path("data/local_storage.csv"))
    store.set_item("cart", "[]")
    store.get_item("cart")
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from filelock import FileLock

from artcart.errors import StoreCorruptedError

logger = logging.getLogger(__name__)

COLUMNS = ["key", "value"]


class KeyValueStore:
    """Interface shared by the durable and the in-memory store."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store; handy for embedding and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove_item(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> List[str]:
        return list(self._data.keys())


class FileKeyValueStore(KeyValueStore):
    """
    Key-value table stored as CSV under DATA_DIR. Every value is read and
    written as a string; pandas NA handling is disabled so values such as
    "null" or "" come back exactly as written.
    """

    def __init__(self, path: Path, lock_timeout: float = 10.0):
        self.path = Path(path)
        self.lock_timeout = lock_timeout

    def _lock(self) -> FileLock:
        return FileLock(str(self.path) + ".lock", timeout=self.lock_timeout)

    def _read_df(self) -> pd.DataFrame:
        if not self.path.exists():
            return pd.DataFrame(columns=COLUMNS)
        try:
            df = pd.read_csv(self.path, dtype=str, keep_default_na=False, na_filter=False, encoding="utf-8")
        except pd.errors.EmptyDataError:
            return pd.DataFrame(columns=COLUMNS)
        except (pd.errors.ParserError, UnicodeDecodeError) as exc:
            raise StoreCorruptedError(f"Unreadable store file {self.path}: {exc}") from exc
        if list(df.columns) != COLUMNS:
            raise StoreCorruptedError(f"Unexpected columns in {self.path}: {list(df.columns)}")
        return df

    def _write_df_nolock(self, df: pd.DataFrame) -> None:
        """
        Write the table WITHOUT acquiring the file lock.
        Use this only when the caller already holds the lock.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(self.path, index=False, encoding="utf-8")

    def _read_for_update(self) -> pd.DataFrame:
        try:
            return self._read_df()
        except StoreCorruptedError:
            logger.warning("Store file %s is unreadable; rewriting it from scratch", self.path)
            return pd.DataFrame(columns=COLUMNS)

    # --- Storage-like primitives ---

    def get_item(self, key: str) -> Optional[str]:
        if not self.path.exists():
            return None
        with self._lock():
            df = self._read_df()
        if df.empty:
            return None
        mask = df["key"] == str(key)
        if not mask.any():
            return None
        return str(df.loc[mask, "value"].iloc[0])

    def set_item(self, key: str, value: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock():
            df = self._read_for_update()
            mask = df["key"] == str(key)
            if mask.any():
                df.loc[mask, "value"] = str(value)
            else:
                df = pd.concat([df, pd.DataFrame([{"key": str(key), "value": str(value)}])],
                               ignore_index=True, sort=False)
            self._write_df_nolock(df)

    def remove_item(self, key: str) -> bool:
        if not self.path.exists():
            return False
        with self._lock():
            df = self._read_for_update()
            if df.empty:
                return False
            orig_len = len(df)
            df = df[df["key"] != str(key)]
            if len(df) == orig_len:
                return False
            self._write_df_nolock(df)
            return True

    def keys(self) -> List[str]:
        if not self.path.exists():
            return []
        with self._lock():
            df = self._read_df()
        return [str(k) for k in df["key"].tolist()]
