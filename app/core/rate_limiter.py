"""
Simple In-Memory Rate Limiter for Authentication Endpoints.

Uses a sliding window approach to limit failed login attempts per client IP.
For production with multiple instances, consider Redis-based rate limiting.
"""

import time
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger(__name__)

LOGIN_FAILURES_IP = "login_failures_ip"


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""
    max_requests: int  # Maximum requests allowed
    window_seconds: int  # Time window in seconds


class RateLimiter:
    """
    Thread-safe in-memory rate limiter using sliding window.

    For production with multiple backend instances, replace with Redis.
    """

    def __init__(
        self,
        configs: Optional[Dict[str, RateLimitConfig]] = None,
        enabled: bool = True,
        trusted_proxies: Sequence[str] = (),
    ):
        # Store request timestamps per key
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._lock = Lock()
        self.enabled = enabled
        self.trusted_proxies = tuple(trusted_proxies)

        # Configuration for different limit types
        self.configs = configs if configs is not None else {
            # Login: 5 failed attempts per 15 minutes per IP
            LOGIN_FAILURES_IP: RateLimitConfig(max_requests=5, window_seconds=900),
        }

    @classmethod
    def from_settings(cls, settings) -> "RateLimiter":
        return cls(
            configs={
                LOGIN_FAILURES_IP: RateLimitConfig(
                    max_requests=settings.auth_rate_limit_attempts,
                    window_seconds=settings.auth_rate_limit_window_seconds,
                ),
            },
            enabled=settings.rate_limit_enabled,
            trusted_proxies=settings.trusted_proxies_list,
        )

    def _cleanup_old_requests(self, key: str, window_seconds: int) -> List[float]:
        """Remove timestamps outside the current window; drop the key once empty."""
        cutoff = time.time() - window_seconds
        timestamps = [ts for ts in self._requests.get(key, ()) if ts > cutoff]
        if timestamps:
            self._requests[key] = timestamps
        else:
            self._requests.pop(key, None)
        return timestamps

    def check(self, limit_type: str, identifier: str) -> Tuple[bool, int]:
        """
        Check whether another request fits in the window, without recording it.

        Args:
            limit_type: Type of rate limit (e.g., "login_failures_ip")
            identifier: Unique identifier (IP address, email, etc.)

        Returns:
            Tuple of (is_allowed: bool, retry_after_seconds: int)
        """
        if not self.enabled:
            return True, 0
        if limit_type not in self.configs:
            logger.warning(f"Unknown rate limit type: {limit_type}")
            return True, 0

        config = self.configs[limit_type]
        key = f"{limit_type}:{identifier}"

        with self._lock:
            now = time.time()
            timestamps = self._cleanup_old_requests(key, config.window_seconds)

            if len(timestamps) >= config.max_requests:
                retry_after = int(min(timestamps) + config.window_seconds - now) + 1
                return False, max(retry_after, 1)
            return True, 0

    def record_request(self, limit_type: str, identifier: str) -> None:
        """Record a request without checking limits."""
        if not self.enabled or limit_type not in self.configs:
            return

        config = self.configs[limit_type]
        key = f"{limit_type}:{identifier}"

        with self._lock:
            self._cleanup_old_requests(key, config.window_seconds)
            self._requests[key].append(time.time())


def get_client_ip(request, trusted_proxies: Sequence[str] = ()) -> str:
    """
    Extract the client IP from a request.

    Forwarding headers are only honoured when the direct peer is one of
    `trusted_proxies`.
    """
    peer = request.client.host if request.client else "unknown"
    if peer not in trusted_proxies:
        return peer

    # X-Forwarded-For: right-most hop not added by one of our proxies
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
        for hop in reversed(hops):
            if hop not in trusted_proxies:
                return hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return peer
