import os
import tempfile
import time
import unittest
from unittest.mock import patch

from invoice_api.retention import RetentionSweeper

DAY = 24 * 60 * 60


class RetentionSweeperTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = self._tmp.name
        self.now = time.time()
        self.sweeper = RetentionSweeper(self.directory, max_age=7 * DAY, interval=DAY)

    def tearDown(self) -> None:
        self.sweeper.stop()
        self._tmp.cleanup()

    def _make_file(self, name: str, age_days: float) -> str:
        path = os.path.join(self.directory, name)
        with open(path, "wb") as handle:
            handle.write(b"%PDF-1.4")
        mtime = self.now - age_days * DAY
        os.utime(path, (mtime, mtime))
        return path

    def test_deletes_only_files_older_than_window(self) -> None:
        self._make_file("old.pdf", 8)
        self._make_file("older.pdf", 30)
        self._make_file("fresh.pdf", 1)
        self._make_file("edge.pdf", 6.9)

        result = self.sweeper.sweep_once(now=self.now)

        self.assertEqual(sorted(result.deleted), ["old.pdf", "older.pdf"])
        self.assertEqual(result.failed, [])
        self.assertEqual(sorted(os.listdir(self.directory)), ["edge.pdf", "fresh.pdf"])

    def test_failed_deletion_does_not_stop_sweep(self) -> None:
        self._make_file("locked.pdf", 10)
        self._make_file("old.pdf", 10)
        real_unlink = os.unlink

        def flaky_unlink(path: str) -> None:
            if os.path.basename(path) == "locked.pdf":
                raise PermissionError(13, "Permission denied", path)
            real_unlink(path)

        with patch("invoice_api.retention.os.unlink", side_effect=flaky_unlink):
            with self.assertLogs("invoice_api.retention", level="WARNING"):
                result = self.sweeper.sweep_once(now=self.now)

        self.assertEqual(result.deleted, ["old.pdf"])
        self.assertEqual(result.failed, ["locked.pdf"])
        self.assertEqual(os.listdir(self.directory), ["locked.pdf"])

    def test_missing_directory_is_a_no_op(self) -> None:
        sweeper = RetentionSweeper(os.path.join(self.directory, "absent"), max_age=DAY, interval=DAY)

        result = sweeper.sweep_once()

        self.assertEqual(result.deleted, [])
        self.assertEqual(result.failed, [])

    def test_skips_subdirectories(self) -> None:
        subdir = os.path.join(self.directory, "nested")
        os.mkdir(subdir)
        os.utime(subdir, (self.now - 30 * DAY, self.now - 30 * DAY))

        result = self.sweeper.sweep_once(now=self.now)

        self.assertEqual(result.deleted, [])
        self.assertTrue(os.path.isdir(subdir))

    def test_start_and_stop_lifecycle(self) -> None:
        self.sweeper.start()
        self.assertTrue(self.sweeper.running)

        self.sweeper.stop()

        self.assertFalse(self.sweeper.running)

    def test_scheduled_sweep_runs_on_interval(self) -> None:
        self._make_file("old.pdf", 10)
        sweeper = RetentionSweeper(self.directory, max_age=7 * DAY, interval=0.05)

        sweeper.start()
        try:
            deadline = time.time() + 5
            while os.listdir(self.directory) and time.time() < deadline:
                time.sleep(0.02)
        finally:
            sweeper.stop()

        self.assertEqual(os.listdir(self.directory), [])


if __name__ == "__main__":
    unittest.main()
