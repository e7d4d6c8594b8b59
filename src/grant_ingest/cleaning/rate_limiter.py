"""FIFO rate limiter for outbound text-cleaning calls."""

import logging
import queue
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable, Optional

from grant_ingest.errors import RateLimitTimeout

logger = logging.getLogger(__name__)

MINUTE = 60.0
DAY = 86400.0
# Worker poll interval while idle or while the daily cap is exhausted
_IDLE_POLL = 1.0


@dataclass
class _Job:
    fn: Callable[[], Any]
    future: Future


@dataclass
class RateLimiterState:
    """Queue and rolling windows. Mutated only by the consuming loop."""

    queue: "queue.Queue[_Job]"
    requests_this_minute: int = 0
    minute_window_start: float = 0.0
    daily_count: int = 0
    day_window_start: float = 0.0


class RateLimiter:
    """
    Serializes calls through one FIFO queue with a minimum delay after each
    call, a per-minute cap and a per-day cap. Work queued past the daily cap
    stays queued until the window resets or the caller cancels it.

    One instance per process per credential. `clock` and `sleep` are injectable
    so the worker loop can be driven deterministically via run_once()/drain().
    """

    def __init__(
        self,
        min_interval: float = 2.0,
        per_minute: int = 25,
        per_day: int = 1400,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        maxsize: int = 0,
    ):
        self.min_interval = min_interval
        self.per_minute = per_minute
        self.per_day = per_day
        self._clock = clock
        self._sleep = sleep
        now = clock()
        self.state = RateLimiterState(
            queue=queue.Queue(maxsize=maxsize),
            minute_window_start=now,
            day_window_start=now,
        )
        self._worker: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._start_lock = threading.Lock()
        self._daily_cap_logged = False

    @property
    def pending(self) -> int:
        return self.state.queue.qsize()

    def daily_cap_reached(self) -> bool:
        self._roll_windows()
        return self.state.daily_count >= self.per_day

    def seconds_until_minute_reset(self) -> float:
        return max(0.0, MINUTE - (self._clock() - self.state.minute_window_start))

    def seconds_until_day_reset(self) -> float:
        return max(0.0, DAY - (self._clock() - self.state.day_window_start))

    def _roll_windows(self) -> None:
        now = self._clock()
        state = self.state
        if now - state.minute_window_start >= MINUTE:
            state.minute_window_start = now
            state.requests_this_minute = 0
        if now - state.day_window_start >= DAY:
            state.day_window_start = now
            state.daily_count = 0
            self._daily_cap_logged = False

    def submit(self, fn: Callable[[], Any]) -> Future:
        """Queue a call and return its Future. Does not start the worker."""
        future: Future = Future()
        self.state.queue.put(_Job(fn=fn, future=future))
        return future

    def run_once(self, block: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Serve at most one queued call.
        Returns False when nothing was dequeued: daily cap reached, minute cap
        reached with block=False, or the queue stayed empty.
        """
        self._roll_windows()
        state = self.state
        if state.daily_count >= self.per_day:
            if not self._daily_cap_logged:
                logger.warning(
                    "Daily rate limit of %d requests reached; %d calls remain queued",
                    self.per_day,
                    state.queue.qsize(),
                )
                self._daily_cap_logged = True
            return False
        if state.requests_this_minute >= self.per_minute:
            if not block:
                return False
            wait = self.seconds_until_minute_reset()
            logger.warning("Rate limit of %d/min reached, waiting %.1fs", self.per_minute, wait)
            self._sleep(wait)
            self._roll_windows()

        try:
            job = state.queue.get(block=block, timeout=timeout)
        except queue.Empty:
            return False
        try:
            if not job.future.set_running_or_notify_cancel():
                logger.debug("Skipping cancelled call")
                return True
            state.requests_this_minute += 1
            state.daily_count += 1
            try:
                result = job.fn()
            except Exception as e:
                job.future.set_exception(e)
            else:
                job.future.set_result(result)
            self._sleep(self.min_interval)
        finally:
            state.queue.task_done()
        return True

    def drain(self) -> int:
        """Serve queued calls until the queue is empty or the daily cap stops it."""
        served = 0
        while not self.state.queue.empty():
            if not self.run_once(block=True, timeout=0):
                break
            served += 1
        return served

    def start(self) -> None:
        """Start the daemon worker thread if it is not running."""
        with self._start_lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._stopping.clear()
            self._worker = threading.Thread(target=self._worker_loop, name="rate-limiter", daemon=True)
            self._worker.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stopping.set()
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None

    def _worker_loop(self) -> None:
        while not self._stopping.is_set():
            if self.daily_cap_reached():
                self.run_once(block=False)
                time.sleep(min(self.seconds_until_day_reset(), _IDLE_POLL))
                continue
            self.run_once(block=True, timeout=_IDLE_POLL)

    def call(self, fn: Callable[[], Any], timeout: Optional[float] = None) -> Any:
        """
        Queue fn, wait for its turn, and return its result.
        On timeout the queued call is cancelled and RateLimitTimeout is raised.
        """
        future = self.submit(fn)
        self.start()
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            future.cancel()
            raise RateLimitTimeout(
                f"Call not served within {timeout}s ({self.pending} queued)"
            ) from None
