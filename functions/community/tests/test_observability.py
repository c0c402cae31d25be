import json
import logging
import unittest

from community.observability import JsonFormatter, configure_logging


class ObservabilityTests(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self.original_handlers = list(root.handlers)
        self.original_level = root.level

    def tearDown(self):
        root = logging.getLogger()
        root.handlers[:] = self.original_handlers
        root.setLevel(self.original_level)

    def test_json_formatter_includes_request_fields(self):
        record = logging.LogRecord(
            "community.middleware", logging.INFO, __file__, 1, "GET %s", ("/api/forum",), None
        )
        record.method = "GET"
        record.status = 200
        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["message"], "GET /api/forum")
        self.assertEqual(payload["level"], "INFO")
        self.assertEqual(payload["method"], "GET")
        self.assertEqual(payload["status"], 200)
        self.assertNotIn("duration_ms", payload)

    def test_configure_logging_replaces_its_own_handler(self):
        configure_logging("DEBUG", "text")
        handler = configure_logging("WARNING", "json")

        root = logging.getLogger()
        ours = [h for h in root.handlers if getattr(h, "_community_handler", False)]
        self.assertEqual(ours, [handler])
        self.assertIsInstance(handler.formatter, JsonFormatter)
        self.assertEqual(root.level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
