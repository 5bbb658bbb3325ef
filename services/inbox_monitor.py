from __future__ import annotations

import hashlib
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Dict, Optional

from models.mailbox import AccessCredential
from models.results import MonitorResult, MonitorStatus, ScanOutcome
from services.errors import AuthError, ValidationError
from services.inbox_scanner import InboxScanner

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_BASE_DELAY_MS = 2000
BACKOFF_STEP_MS = 100
JOIN_POLL_SECONDS = 0.1

# Blocks for up to ``seconds``; returns True when the wait was cut short by cancellation.
WaitFn = Callable[[threading.Event, float], bool]


def backoff_delay_ms(base_delay_ms: int, attempt: int) -> int:
    return base_delay_ms + attempt * BACKOFF_STEP_MS


def _wait_on_event(cancel: threading.Event, seconds: float) -> bool:
    return cancel.wait(seconds)


class InboxMonitor:
    """Poll the mailbox until a code shows up, attempts run out, or the token dies.

    Missing mail is retried with a linear backoff. 401/403 is raised as
    ``AuthError`` on the spot: a dead token cannot succeed on a later attempt.
    """

    def __init__(
        self,
        scanner: InboxScanner,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        wait: Optional[WaitFn] = None,
    ):
        self._scanner = scanner
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._wait = wait or _wait_on_event

    def monitor(
        self,
        credential: AccessCredential,
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> MonitorResult:
        total = self._max_attempts if max_attempts is None else max_attempts
        base_delay = self._base_delay_ms if base_delay_ms is None else base_delay_ms
        if total < 1:
            raise ValidationError("max_attempts", "max_attempts must be at least 1")
        if base_delay < 0:
            raise ValidationError("base_delay_ms", "base_delay_ms must not be negative")
        cancel = cancel or threading.Event()

        made_progress = False
        for attempt in range(total):
            if cancel.is_set():
                return self._cancelled(attempt)

            LOGGER.info("Checking for verification code (attempt %s/%s)", attempt + 1, total)
            try:
                scan = self._scanner.scan(credential, attempt_number=attempt + 1, cancel=cancel)
            except AuthError as exc:
                LOGGER.error("Monitoring stopped on attempt %s: %s", attempt + 1, exc.kind.value)
                raise

            made_progress = made_progress or scan.made_progress
            if scan.outcome is ScanOutcome.FOUND:
                return MonitorResult(
                    status=MonitorStatus.FOUND,
                    attempts=attempt + 1,
                    code=scan.result.code,
                    folder=scan.result.folder,
                )
            if scan.outcome is ScanOutcome.CANCELLED:
                return self._cancelled(attempt + 1)

            if attempt < total - 1:
                delay_ms = backoff_delay_ms(base_delay, attempt)
                LOGGER.info("Waiting %sms before next check...", delay_ms)
                if self._wait(cancel, delay_ms / 1000):
                    return self._cancelled(attempt + 1)

        if not made_progress:
            LOGGER.warning("No folder could be read in %s attempts", total)
            return MonitorResult(
                status=MonitorStatus.UNAVAILABLE,
                attempts=total,
                detail="every folder fetch failed",
            )
        LOGGER.info("No verification code found after %s attempts", total)
        return MonitorResult(status=MonitorStatus.NOT_FOUND, attempts=total)

    @staticmethod
    def _cancelled(attempts: int) -> MonitorResult:
        LOGGER.info("Monitoring cancelled after %s attempts", attempts)
        return MonitorResult(status=MonitorStatus.CANCELLED, attempts=attempts)


def credential_key(credential: AccessCredential) -> str:
    return hashlib.sha256(credential.token.encode("utf-8")).hexdigest()


class MonitorCoordinator:
    """Allow at most one running monitor per credential.

    A caller arriving while a monitor for the same credential is running waits
    for it and receives the same result (or the same ``AuthError``). Each
    caller keeps its own cancel event: a joiner whose event is set stops
    waiting with ``CANCELLED``, and a joiner whose owner was cancelled takes
    over and runs its own monitor.
    """

    def __init__(self, monitor: InboxMonitor):
        self._monitor = monitor
        self._lock = threading.Lock()
        self._inflight: Dict[str, Future] = {}

    def is_running(self, credential: AccessCredential) -> bool:
        with self._lock:
            return credential_key(credential) in self._inflight

    def monitor(
        self,
        credential: AccessCredential,
        cancel: Optional[threading.Event] = None,
        **kwargs,
    ) -> MonitorResult:
        cancel = cancel or threading.Event()
        key = credential_key(credential)
        while True:
            with self._lock:
                future = self._inflight.get(key)
                owner = future is None
                if owner:
                    future = Future()
                    self._inflight[key] = future

            if owner:
                return self._run(key, future, credential, cancel, kwargs)

            LOGGER.info("Joining running monitor for client %s", credential.issued_for)
            result = self._join(future, cancel)
            if result is None:
                LOGGER.info("Monitoring cancelled while waiting for client %s", credential.issued_for)
                return MonitorResult(status=MonitorStatus.CANCELLED, attempts=0)
            if result.status is not MonitorStatus.CANCELLED:
                return result
            LOGGER.info("Running monitor for client %s was cancelled; taking over", credential.issued_for)

    @staticmethod
    def _join(future: Future, cancel: threading.Event) -> Optional[MonitorResult]:
        # None means the joiner's own cancel event fired first.
        while not cancel.is_set():
            try:
                return future.result(timeout=JOIN_POLL_SECONDS)
            except FutureTimeout:
                continue
        return None

    def _run(
        self,
        key: str,
        future: Future,
        credential: AccessCredential,
        cancel: threading.Event,
        options: dict,
    ) -> MonitorResult:
        try:
            result = self._monitor.monitor(credential, cancel=cancel, **options)
        except BaseException as exc:
            self._release(key)
            future.set_exception(exc)
            raise
        self._release(key)
        future.set_result(result)
        return result

    def _release(self, key: str) -> None:
        # Released before the future resolves so a taking-over joiner finds the slot free.
        with self._lock:
            self._inflight.pop(key, None)
