from __future__ import annotations

import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from starlette.requests import Request

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.inkwell.config import settings
from backend.inkwell.utils.access_log import append_line, log_http_request, to_logfmt


def _request(path: str, *, query: str = "") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": path,
            "query_string": query.encode(),
            "headers": [(b"user-agent", b"unittest")],
            "client": ("127.0.0.1", 5000),
            "scheme": "http",
            "server": ("testserver", 80),
        }
    )


class AccessLogTests(unittest.IsolatedAsyncioTestCase):
    def test_to_logfmt_quotes_and_skips_empty(self):
        line = to_logfmt(
            [
                ("method", "GET"),
                ("path", "/api/entries"),
                ("ua", 'curl "x" 1.0'),
                ("owner", None),
                ("status", 200),
                ("ok", True),
            ]
        )
        self.assertEqual(line, 'method=GET path=/api/entries ua="curl \\"x\\" 1.0" status=200 ok=true')

    def test_newlines_are_escaped(self):
        line = to_logfmt([("error", "a\nb")])
        self.assertNotIn("\n", line)
        self.assertTrue(line.startswith("error="))

    async def test_append_line_writes_daily_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            with patch.object(settings, "access_log_dir", tmp):
                path = await append_line("kind=http", now=datetime(2024, 1, 2, 3, 4, 5))
            self.assertEqual(path.name, "2024-01-02.logs")
            self.assertEqual(path.read_text(encoding="utf-8"), "kind=http\n")

    async def test_request_line_carries_owner_and_request_id(self):
        request = _request("/api/entries/search", query="q=secret")
        request.state.owner_id = 7
        with tempfile.TemporaryDirectory() as tmp:
            with patch.multiple(settings, access_log_dir=tmp, access_log_enabled=True, access_log_include_query=False):
                await log_http_request(request, status_code=200, duration_ms=12, request_id="abc123")
            [log_file] = list(Path(tmp).glob("*.logs"))
            line = log_file.read_text(encoding="utf-8").strip()

        self.assertIn(" kind=http rid=abc123 method=GET path=/api/entries/search status=200 dur_ms=12 owner=7 ", line)
        self.assertNotIn("secret", line)
        ts = line.split(" ", 1)[0].removeprefix("ts=")
        self.assertEqual(log_file.name, f"{ts[:10]}.logs")

    async def test_ignored_paths_are_not_logged(self):
        with tempfile.TemporaryDirectory() as tmp:
            with patch.multiple(settings, access_log_dir=tmp, access_log_enabled=True, access_log_ignore_paths="/health, /"):
                await log_http_request(_request("/health"), status_code=200, duration_ms=1)
            self.assertEqual(list(Path(tmp).iterdir()), [])


if __name__ == "__main__":
    unittest.main()
