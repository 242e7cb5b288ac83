from __future__ import annotations

import unittest

from core.throttle import RequestThrottle


class RequestThrottleTests(unittest.TestCase):
    def test_allows_max_requests_per_window(self) -> None:
        throttle = RequestThrottle(max_requests=3, window_seconds=60)
        decisions = [throttle.check("1.2.3.4", now=100.0 + i) for i in range(3)]
        self.assertTrue(all(d.allowed for d in decisions))
        self.assertEqual([d.remaining for d in decisions], [2, 1, 0])

        blocked = throttle.check("1.2.3.4", now=105.0)
        self.assertFalse(blocked.allowed)
        # Oldest hit at t=100 leaves the window at t=160.
        self.assertEqual(blocked.retry_after, 55)

    def test_window_slides(self) -> None:
        throttle = RequestThrottle(max_requests=2, window_seconds=10)
        throttle.check("client", now=0.0)
        throttle.check("client", now=5.0)
        self.assertFalse(throttle.check("client", now=9.0).allowed)
        self.assertTrue(throttle.check("client", now=10.5).allowed)

    def test_clients_are_independent(self) -> None:
        throttle = RequestThrottle(max_requests=1, window_seconds=60)
        self.assertTrue(throttle.check("a", now=0.0).allowed)
        self.assertFalse(throttle.check("a", now=1.0).allowed)
        self.assertTrue(throttle.check("b", now=1.0).allowed)

    def test_idle_clients_are_swept(self) -> None:
        throttle = RequestThrottle(max_requests=5, window_seconds=60)
        throttle.check("a", now=0.0)
        throttle.check("b", now=1.0)
        self.assertEqual(throttle.tracked_clients(), 2)

        throttle.check("c", now=200.0)
        self.assertEqual(throttle.tracked_clients(), 1)

    def test_retry_after_is_at_least_one_second(self) -> None:
        throttle = RequestThrottle(max_requests=1, window_seconds=1)
        throttle.check("a", now=0.0)
        self.assertEqual(throttle.check("a", now=0.99).retry_after, 1)


if __name__ == "__main__":
    unittest.main()
