"""キー・バリューストア層

在庫・発注データは名前付きの不透明なblobとして保存する。
読み込み→変更→保存のサイクルは locked() で囲み、同じストアを使う全員で直列化する。
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

DB_PATH = Path.cwd() / "stock.db"
SQLITE_TIMEOUT = 30

# 論理キー
PRODUCTS_KEY = "stock_products"
MOVEMENTS_KEY = "stock_movements"
ORDER_ITEMS_KEY = "order_items"
OVERRIDES_KEY = "auto_order_overrides"
CATALOG_CACHE_KEY = "catalog_cache"


class KeyValueStore:
    """blobストアの基底クラス"""

    def __init__(self):
        self._key_locks: dict[str, threading.RLock] = {}
        self._key_locks_guard = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def set(self, key: str, value: bytes):
        raise NotImplementedError

    def remove(self, key: str):
        raise NotImplementedError

    def close(self):
        pass

    # ── ロック ──

    def _key_lock(self, key: str) -> threading.RLock:
        with self._key_locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
            return lock

    @contextmanager
    def locked(self, *keys: str) -> Iterator["KeyValueStore"]:
        """指定キーの read-modify-write を排他する（同一スレッドなら再入可）

        複数キーはソート順に取得するので、呼び出し側の順序に依存しない。
        """
        locks = [self._key_lock(key) for key in sorted(set(keys))]
        for lock in locks:
            lock.acquire()
        try:
            yield self
        finally:
            for lock in reversed(locks):
                lock.release()

    # ── JSON ヘルパー ──

    def get_json(self, key: str, default: Any = None) -> Any:
        """JSON blobを読む。壊れたblobは空として扱う。"""
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.error("Corrupt blob under key %r, treating as empty", key)
            return default

    def set_json(self, key: str, value: Any):
        self.set(key, json.dumps(value, ensure_ascii=False).encode("utf-8"))


class MemoryKeyValueStore(KeyValueStore):
    """プロセス内ストア（テスト・ドライラン用）"""

    def __init__(self):
        super().__init__()
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes):
        self._data[key] = bytes(value)

    def remove(self, key: str):
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite によるblobストア

    locked() は BEGIN IMMEDIATE のトランザクションになるため、
    同じDBファイルを開いている別プロセスとも直列化される。
    """

    def __init__(self, db_path: Optional[Path] = None, timeout: float = SQLITE_TIMEOUT):
        super().__init__()
        self.db_path = Path(db_path) if db_path else DB_PATH
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._depth = 0
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path), timeout=self.timeout, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_db(self):
        """テーブル作成"""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                updated_at TEXT DEFAULT (datetime('now', 'localtime'))
            );
        """)
        self.conn.commit()

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    @contextmanager
    def locked(self, *keys: str) -> Iterator["SQLiteKeyValueStore"]:
        # 接続は1本なので、キーに関係なくストア全体で排他する
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self.conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outermost:
                    self.conn.rollback()
                raise
            self._depth -= 1
            if outermost:
                self.conn.commit()

    def _commit(self):
        if self._depth == 0:
            self.conn.commit()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            row = self.conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        if row:
            return bytes(row["value"])
        return None

    def set(self, key: str, value: bytes):
        with self._lock:
            self.conn.execute("""
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, datetime('now', 'localtime'))
            """, (key, sqlite3.Binary(value)))
            self._commit()

    def remove(self, key: str):
        with self._lock:
            self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self._commit()
