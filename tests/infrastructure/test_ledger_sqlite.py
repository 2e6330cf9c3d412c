import threading
import unittest

from tests.utils.tempdir import managed_temp_dir
from wallfeed.domain.errors import StorageError
from wallfeed.infrastructure.ledger_sqlite import SQLiteLedger


class TestSQLiteLedger(unittest.TestCase):
    def test_creates_parent_directory_and_starts_empty(self):
        with managed_temp_dir("ledger_init") as tmp_path:
            db_path = tmp_path / "nested" / "sent_images.db"
            ledger = SQLiteLedger(db_path)
            try:
                self.assertTrue(db_path.exists())
                self.assertFalse(ledger.is_sent("abc123"))
                self.assertEqual(ledger.count(), 0)
            finally:
                ledger.close()

    def test_mark_sent_is_idempotent(self):
        with managed_temp_dir("ledger_idempotent") as tmp_path:
            ledger = SQLiteLedger(tmp_path / "sent_images.db")
            try:
                ledger.mark_sent("abc123")
                ledger.mark_sent("abc123")

                self.assertTrue(ledger.is_sent("abc123"))
                self.assertEqual(ledger.count(), 1)
            finally:
                ledger.close()

    def test_entries_survive_reopen(self):
        with managed_temp_dir("ledger_reopen") as tmp_path:
            db_path = tmp_path / "sent_images.db"
            first = SQLiteLedger(db_path)
            first.mark_sent("a1")
            first.close()

            second = SQLiteLedger(db_path)
            try:
                self.assertTrue(second.is_sent("a1"))
                self.assertFalse(second.is_sent("a2"))
            finally:
                second.close()

    def test_concurrent_marks_from_two_connections_keep_one_row(self):
        with managed_temp_dir("ledger_concurrent") as tmp_path:
            db_path = tmp_path / "sent_images.db"
            ledgers = [SQLiteLedger(db_path), SQLiteLedger(db_path)]
            errors = []

            def mark(ledger):
                try:
                    for _ in range(20):
                        ledger.mark_sent("same-id")
                except StorageError as exc:
                    errors.append(exc)

            threads = [threading.Thread(target=mark, args=(ledger,)) for ledger in ledgers]
            try:
                for thread in threads:
                    thread.start()
                for thread in threads:
                    thread.join()

                self.assertEqual(errors, [])
                self.assertEqual(ledgers[0].count(), 1)
                self.assertTrue(ledgers[1].is_sent("same-id"))
            finally:
                for ledger in ledgers:
                    ledger.close()

    def test_operations_after_close_raise_storage_error(self):
        with managed_temp_dir("ledger_closed") as tmp_path:
            ledger = SQLiteLedger(tmp_path / "sent_images.db")
            ledger.close()

            with self.assertRaises(StorageError):
                ledger.is_sent("abc123")
            with self.assertRaises(StorageError):
                ledger.mark_sent("abc123")


if __name__ == "__main__":
    unittest.main()
