import os
import time
import unittest
from typing import Optional
from unittest import mock

from invoice_api.config import RenderOptions
from invoice_api.render_pool import RenderError, RenderPool, RenderTimeoutError

QUICK_PDF = b"%PDF-1.4 quick"

# Workers run in spawned processes, so these must stay importable at module level.


def quick_render(html: str, font_path: Optional[str] = None, font_bold_path: Optional[str] = None) -> bytes:
    return QUICK_PDF


def hanging_render(html: str, font_path: Optional[str] = None, font_bold_path: Optional[str] = None) -> bytes:
    time.sleep(60)
    return QUICK_PDF


def crashing_render(html: str, font_path: Optional[str] = None, font_bold_path: Optional[str] = None) -> bytes:
    os._exit(1)


class SpawnedRenderPoolTests(unittest.TestCase):
    def setUp(self) -> None:
        # One worker: a hung render left running would block every later one.
        self.pool = RenderPool(RenderOptions(max_workers=1, timeout_ms=3000, isolated=True))
        patcher = mock.patch("invoice_api.render_pool.load_render_pdf")
        self.load_render_pdf = patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self.pool.shutdown)

    def test_renders_in_worker_process(self) -> None:
        self.load_render_pdf.return_value = quick_render
        self.pool.start()

        self.assertEqual(self.pool.render("<p>Rice</p>"), QUICK_PDF)

    def test_hung_render_times_out_and_frees_the_worker(self) -> None:
        self.load_render_pdf.return_value = hanging_render
        started = time.monotonic()
        with self.assertRaises(RenderTimeoutError):
            self.pool.render("<p>Rice</p>")
        self.assertLess(time.monotonic() - started, 30)

        self.load_render_pdf.return_value = quick_render
        self.assertEqual(self.pool.render("<p>Soap</p>"), QUICK_PDF)

    def test_crashed_worker_is_reported_and_pool_restarts(self) -> None:
        self.load_render_pdf.return_value = crashing_render
        with self.assertRaises(RenderError) as caught:
            self.pool.render("<p>Rice</p>")
        self.assertNotIsInstance(caught.exception, RenderTimeoutError)

        self.load_render_pdf.return_value = quick_render
        self.assertEqual(self.pool.render("<p>Soap</p>"), QUICK_PDF)


if __name__ == "__main__":
    unittest.main()
