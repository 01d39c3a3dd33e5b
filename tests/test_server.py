import http.client
import json
import os
import tempfile
import threading
import unittest
from typing import Any, Dict, Optional, Tuple

from invoice_api.server import create_server
from invoice_api.service import InvoiceService

from .helpers import FAKE_PDF, RecordingRenderer, make_config


class ServerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.output_dir = os.path.join(self._tmp.name, "invoices")
        self.config = make_config(self.output_dir, max_body_bytes=4096)
        self.renderer = RecordingRenderer()
        self._start(InvoiceService(self.config, renderer=self.renderer))

    def _start(self, service: InvoiceService) -> None:
        self.server = create_server(self.config, service)
        self.port = self.server.server_address[1]
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()

    def tearDown(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        self.thread.join(5)
        self._tmp.cleanup()

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[int, Dict[str, str], bytes]:
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=10)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            return response.status, dict(response.getheaders()), response.read()
        finally:
            conn.close()

    def _post_json(self, payload: Any) -> Tuple[int, Dict[str, Any]]:
        body = json.dumps(payload).encode("utf-8")
        status, _, raw = self._request(
            "POST",
            "/api/invoice/generate",
            body=body,
            headers={"Content-Type": "application/json"},
        )
        return status, json.loads(raw)

    def test_health_returns_ok(self) -> None:
        status, headers, body = self._request("GET", "/health")

        self.assertEqual(status, 200)
        self.assertEqual(json.loads(body), {"status": "ok", "service": "pdf-invoice-api"})
        self.assertEqual(headers.get("Access-Control-Allow-Origin"), "*")

    def test_health_alias_is_not_exposed(self) -> None:
        status, _, body = self._request("GET", "/healthz")

        self.assertEqual(status, 404)
        self.assertEqual(json.loads(body)["error"], "not_found")

    def test_health_ignores_renderer_state(self) -> None:
        self.server.service.renderer = RecordingRenderer(error=RuntimeError("cannot launch"))

        status, _, _ = self._request("GET", "/health")

        self.assertEqual(status, 200)

    def test_generate_end_to_end(self) -> None:
        status, payload = self._post_json(
            {
                "invoice_number": "INV-42",
                "items": [{"name": "Rice 5kg", "qty": 2, "unit": "kg", "price": 250}],
                "total_amount": 500,
            }
        )

        self.assertEqual(status, 200)
        self.assertTrue(payload["success"])
        self.assertEqual(payload["invoice_number"], "INV-42")
        self.assertEqual(payload["filename"], "INV-42.pdf")
        self.assertEqual(payload["original_url"], "http://shop.example:8090/invoices/INV-42.pdf")
        self.assertEqual(payload["pdf_url"], payload["original_url"])
        self.assertEqual(payload["message"], "Invoice INV-42 generated successfully")
        path = os.path.join(self.output_dir, "INV-42.pdf")
        self.assertGreater(os.path.getsize(path), 0)

    def test_generated_pdf_is_served(self) -> None:
        self._post_json({"invoice_number": "INV-7", "items": []})

        status, headers, body = self._request("GET", "/invoices/INV-7.pdf")

        self.assertEqual(status, 200)
        self.assertEqual(headers.get("Content-Type"), "application/pdf")
        self.assertEqual(body, FAKE_PDF)

    def test_unknown_invoice_is_404(self) -> None:
        status, _, _ = self._request("GET", "/invoices/INV-404.pdf")

        self.assertEqual(status, 404)

    def test_traversal_is_404(self) -> None:
        status, _, _ = self._request("GET", "/invoices/..%2F..%2Fetc%2Fpasswd")

        self.assertEqual(status, 404)

    def test_render_failure_is_500_without_urls(self) -> None:
        self.server.service.renderer = RecordingRenderer(error=RuntimeError("engine crashed"))

        with self.assertLogs("invoice_api.server", level="ERROR"):
            status, payload = self._post_json({"invoice_number": "INV-9", "items": []})

        self.assertEqual(status, 500)
        self.assertEqual(payload["error"], "Failed to generate PDF")
        self.assertEqual(payload["kind"], "render")
        self.assertEqual(payload["message"], "engine crashed")
        self.assertNotIn("pdf_url", payload)
        self.assertFalse(os.path.exists(os.path.join(self.output_dir, "INV-9.pdf")))

    def test_invalid_payload_is_400(self) -> None:
        status, payload = self._post_json({"items": "nope"})

        self.assertEqual(status, 400)
        self.assertEqual(payload["error"], "invalid_payload")

    def test_number_too_large_for_a_float_is_400(self) -> None:
        huge = int("1" + "0" * 400)
        status, payload = self._post_json({"items": [{"name": "Rice", "qty": huge, "price": 1}]})

        self.assertEqual(status, 400)
        self.assertEqual(payload["error"], "invalid_item")

    def test_oversized_body_is_413(self) -> None:
        status, _, raw = self._request(
            "POST",
            "/api/invoice/generate",
            headers={"Content-Length": "999999"},
        )

        self.assertEqual(status, 413)
        self.assertEqual(json.loads(raw)["error"], "payload_too_large")

    def test_unknown_post_route_is_404(self) -> None:
        status, _, _ = self._request("POST", "/generate", headers={"Content-Length": "0"})

        self.assertEqual(status, 404)

    def test_preflight_allows_cors(self) -> None:
        status, headers, _ = self._request("OPTIONS", "/api/invoice/generate")

        self.assertEqual(status, 204)
        self.assertIn("POST", headers.get("Access-Control-Allow-Methods", ""))


if __name__ == "__main__":
    unittest.main()
