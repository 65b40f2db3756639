import unittest
from unittest import mock

import requests

from hnshowcase.runtime.retry import retry_with_backoff


class TestRetryWithBackoff(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch("hnshowcase.runtime.retry.time.sleep")
        self.sleep = patcher.start()
        self.addCleanup(patcher.stop)

    def test_network_error_retried_until_success(self):
        calls = []

        @retry_with_backoff(max_retries=3, base_delay=0.5)
        def fetch():
            calls.append(1)
            if len(calls) < 3:
                raise requests.ConnectionError("reset")
            return "ok"

        self.assertEqual(fetch(), "ok")
        self.assertEqual(len(calls), 3)
        self.assertEqual(self.sleep.call_count, 2)

    def test_gives_up_after_max_retries(self):
        calls = []

        @retry_with_backoff(max_retries=2)
        def parse():
            calls.append(1)
            raise ValueError("not json")

        with self.assertRaises(ValueError):
            parse()
        self.assertEqual(len(calls), 2)

    def test_other_errors_are_not_retried(self):
        calls = []

        @retry_with_backoff(max_retries=3)
        def broken():
            calls.append(1)
            raise KeyError("choices")

        with self.assertRaises(KeyError):
            broken()
        self.assertEqual(len(calls), 1)
        self.sleep.assert_not_called()

    def test_delay_is_capped(self):
        @retry_with_backoff(max_retries=2, base_delay=100, max_delay=5)
        def slow():
            raise requests.Timeout("slow")

        with self.assertRaises(requests.Timeout):
            slow()
        self.sleep.assert_called_once_with(5)


if __name__ == "__main__":
    unittest.main()
