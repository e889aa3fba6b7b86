from __future__ import annotations

import time


class GatewayStats:
    """Process-wide request counter and uptime, owned by the serving app.

    Created when the app is built and never persisted; a restart starts again
    from zero.
    """

    def __init__(self) -> None:
        self.start_ts = time.time()
        self._monotonic_start = time.monotonic()
        self.total_requests = 0

    def record_request(self) -> int:
        self.total_requests += 1
        return self.total_requests

    def uptime_seconds(self) -> float:
        return time.monotonic() - self._monotonic_start

    def snapshot(self) -> dict:
        return {
            "status": "healthy",
            "totalRequests": self.total_requests,
            "uptime": self.uptime_seconds(),
        }
