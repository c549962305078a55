"""Unit tests for client.api -- data models and session handling."""

import unittest

from client.api import RateLimitInfo, Server, SpeedtestAPI, format_size


class TestServer(unittest.TestCase):
    SAMPLE = {"id": 7, "name": "Local", "url": "http://speed.test:8080/"}

    def test_from_dict(self):
        s = Server.from_dict(self.SAMPLE)
        self.assertEqual(s.id, 7)
        self.assertEqual(s.name, "Local")
        self.assertEqual(s.base_url, "http://speed.test:8080")

    def test_from_dict_defaults(self):
        s = Server.from_dict({})
        self.assertEqual(s.id, 0)
        self.assertEqual(s.name, "")
        self.assertEqual(s.base_url, "http://127.0.0.1:8080")

    def test_endpoint_urls(self):
        s = Server.from_url("http://speed.test:8080/")
        self.assertEqual(s.download_url, "http://speed.test:8080/download")
        self.assertEqual(s.upload_url, "http://speed.test:8080/upload")
        self.assertEqual(s.ping_url, "http://speed.test:8080/ping")

    def test_to_dict_roundtrip(self):
        s = Server.from_dict(self.SAMPLE)
        self.assertEqual(Server.from_dict(s.to_dict()), s)


class TestRateLimitInfo(unittest.TestCase):
    def test_parses_headers(self):
        info = RateLimitInfo.from_headers({
            "Retry-After": "42",
            "X-RateLimit-Limit": "200",
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": "1700000000",
        })
        self.assertEqual(info.retry_after, 42.0)
        self.assertEqual(info.limit, 200)
        self.assertEqual(info.remaining, 0)
        self.assertEqual(info.reset, 1700000000)

    def test_missing_and_malformed(self):
        info = RateLimitInfo.from_headers({"Retry-After": "soon"})
        self.assertEqual(info.to_dict(), {
            "retry_after": None, "limit": None, "remaining": None, "reset": None,
        })


class TestFormatSize(unittest.TestCase):
    def test_whole_and_fractional(self):
        self.assertEqual(format_size(2.0), "2")
        self.assertEqual(format_size(0.5), "0.5")


class TestSpeedtestAPI(unittest.TestCase):
    def test_session_requires_context(self):
        api = SpeedtestAPI("http://speed.test")
        with self.assertRaises(RuntimeError):
            api.session

    def test_select_server(self):
        server = SpeedtestAPI("http://speed.test/").select_server()
        self.assertEqual(server.base_url, "http://speed.test")


if __name__ == "__main__":
    unittest.main()
