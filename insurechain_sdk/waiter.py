"""
Bounded, cancellable polling for transaction receipts.
"""
import logging
import threading
import time
from typing import Any, Callable, Optional, Protocol

from .exceptions import TransactionTimeoutError, WaitCancelledError


class Clock(Protocol):
    """Time source used by the waiter; tests inject a fake one"""

    def monotonic(self) -> float:
        ...

    def sleep(self, seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
        """Sleep for ``seconds``, returning early if ``cancel_event`` is set"""
        ...


class SystemClock:
    """Wall-clock implementation backed by ``time.monotonic``"""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
        if cancel_event is not None:
            cancel_event.wait(seconds)
        else:
            time.sleep(seconds)


class ReceiptWaiter:
    """
    Poll a receipt source until it returns something or the bound runs out.

    The observable contract is: at most ``max_attempts`` polls, ``poll_interval``
    seconds apart, returning as soon as a poll yields a non-null receipt.
    An optional ``deadline`` (seconds on the injected clock) stops earlier,
    and a ``threading.Event`` lets another thread cancel the wait.
    """

    def __init__(
        self,
        fetch: Callable[[str], Optional[Any]],
        clock: Optional[Clock] = None,
        max_attempts: int = 30,
        poll_interval: float = 1.0,
        deadline: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the waiter

        Args:
            fetch: Callable returning the receipt for a hash, or None if not mined
            clock: Time source (defaults to SystemClock)
            max_attempts: Maximum number of polls
            poll_interval: Seconds to sleep between polls
            deadline: Optional overall time budget in seconds
            logger: Optional logger instance

        Raises:
            ValueError: If max_attempts is not positive or poll_interval is negative
        """
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        if poll_interval < 0:
            raise ValueError(f"poll_interval cannot be negative, got {poll_interval}")
        self.fetch = fetch
        self.clock = clock or SystemClock()
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self.deadline = deadline
        self.logger = logger or logging.getLogger(__name__)

    def wait(
        self,
        tx_hash: str,
        max_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> Any:
        """
        Block until the receipt for ``tx_hash`` is available.

        Args:
            tx_hash: Transaction hash to wait for
            max_attempts: Override the configured attempt bound
            poll_interval: Override the configured interval
            deadline: Override the configured time budget
            cancel_event: Event that aborts the wait when set

        Returns:
            Whatever ``fetch`` returned for the first non-null poll

        Raises:
            TransactionTimeoutError: If the bound is exhausted
            WaitCancelledError: If ``cancel_event`` is set
        """
        attempts_allowed = max_attempts if max_attempts is not None else self.max_attempts
        interval = poll_interval if poll_interval is not None else self.poll_interval
        budget = deadline if deadline is not None else self.deadline
        if attempts_allowed <= 0:
            raise ValueError(f"max_attempts must be positive, got {attempts_allowed}")

        started = self.clock.monotonic()
        attempts = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise WaitCancelledError(tx_hash, attempts)

            attempts += 1
            receipt = self.fetch(tx_hash)
            if receipt is not None:
                self.logger.debug(f"Receipt for {tx_hash} found after {attempts} attempt(s)")
                return receipt

            elapsed = self.clock.monotonic() - started
            if attempts >= attempts_allowed or (budget is not None and elapsed + interval > budget):
                self.logger.warning(f"Gave up waiting for {tx_hash} after {attempts} attempt(s)")
                raise TransactionTimeoutError(tx_hash, attempts, elapsed)

            self.clock.sleep(interval, cancel_event)
