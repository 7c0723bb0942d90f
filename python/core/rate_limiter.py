import time
from collections import defaultdict, deque
from typing import Deque, Dict
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)


class RateLimiter:
    """Sliding-window request limit, tracked separately per host."""

    def __init__(self, max_requests: int = 30, window_seconds: int = 60):
        self.max_requests = max_requests if isinstance(max_requests, int) and max_requests > 0 else 30
        self.window_seconds = window_seconds if isinstance(window_seconds, int) else 60
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)

    def _prune(self, host: str, now: float) -> Deque[float]:
        requests = self._requests[host]
        while requests and now - requests[0] >= self.window_seconds:
            requests.popleft()
        return requests

    def is_allowed(self, host: str = "") -> bool:
        """Record a request to ``host`` if the window has room for it."""
        now = time.time()
        requests = self._prune(host, now)

        if len(requests) < self.max_requests:
            requests.append(now)
            return True
        return False

    def wait_time(self, host: str = "") -> float:
        requests = self._prune(host, time.time())
        if len(requests) < self.max_requests:
            return 0
        return max(0, self.window_seconds - (time.time() - requests[0]))

    def wait_if_needed(self, host: str = "") -> None:
        while not self.is_allowed(host):
            wait = self.wait_time(host)
            logger.debug("Rate limit reached for %s. Waiting %.2f seconds...", host or "<any>", wait)
            time.sleep(wait)
