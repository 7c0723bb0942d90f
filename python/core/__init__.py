from .cache import Cache
from .rate_limiter import RateLimiter

__all__ = ["Cache", "RateLimiter"]
