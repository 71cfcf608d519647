"""
Thread-safe rate-limited logging.

Used by best-effort paths (such as the event log scan) that would
otherwise repeat the same warning on every call while a node is down.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60


class RateLimitedLog:
    """Emit each distinct message at most once per ``interval`` seconds"""

    def __init__(self, interval: int = DEFAULT_INTERVAL, maxsize: int = 100):
        self.interval = interval
        self._seen: TTLCache = TTLCache(maxsize=maxsize, ttl=interval)
        self._lock = threading.RLock()

    def log(
        self,
        message: str,
        level: str = "warning",
        logger_instance: Optional[logging.Logger] = None
    ) -> bool:
        """
        Log a message unless the same level/message was logged recently.

        Args:
            message: Message to log
            level: Log level name (debug, info, warning, error, critical)
            logger_instance: Logger to use (defaults to module logger)

        Returns:
            True if the message was emitted, False if it was suppressed
        """
        log_instance = logger_instance or logger
        log_method = getattr(log_instance, level.lower(), log_instance.warning)
        key = f"{log_instance.name}:{level}:{message}"

        with self._lock:
            if key in self._seen:
                return False
            log_method(message)
            self._seen[key] = True
            return True

    def reset(self) -> None:
        with self._lock:
            self._seen.clear()


_default = RateLimitedLog()


def rate_limited_log(
    message: str,
    level: str = "warning",
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """Log through the shared module-level limiter."""
    return _default.log(message, level=level, logger_instance=logger_instance)
