import sqlite3
from contextlib import suppress
from pathlib import Path

from wallfeed.domain.errors import StorageError


class SQLiteLedger:
    """Durable set of item ids that went through the whole publish pipeline."""

    def __init__(self, db_path: str | Path, timeout: float = 30.0) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(self.db_path, timeout=timeout, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open ledger {self.db_path}: {exc}") from exc
        try:
            self.init_schema()
        except StorageError:
            self.conn.close()
            raise

    def init_schema(self) -> None:
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS sent_images (
                    id TEXT PRIMARY KEY
                )
                """
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot initialise ledger schema: {exc}") from exc

    def is_sent(self, item_id: str) -> bool:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT 1 FROM sent_images WHERE id = ?", (item_id,))
            return cursor.fetchone() is not None
        except sqlite3.Error as exc:
            raise StorageError(f"Ledger lookup failed for {item_id}: {exc}") from exc

    def mark_sent(self, item_id: str) -> None:
        try:
            cursor = self.conn.cursor()
            cursor.execute("INSERT OR IGNORE INTO sent_images (id) VALUES (?)", (item_id,))
            self.conn.commit()
        except sqlite3.Error as exc:
            with suppress(sqlite3.Error):
                self.conn.rollback()
            raise StorageError(f"Ledger commit failed for {item_id}: {exc}") from exc

    def count(self) -> int:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM sent_images")
            return int(cursor.fetchone()[0])
        except sqlite3.Error as exc:
            raise StorageError(f"Ledger count failed: {exc}") from exc

    def close(self) -> None:
        self.conn.close()
