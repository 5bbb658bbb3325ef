from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from typing import List

import pytest

from fakes import FakeReader, make_message
from models.mailbox import AccessCredential, Folder
from models.results import MonitorResult, MonitorStatus
from services.errors import AuthError, AuthErrorKind, FetchError, ValidationError
from services.inbox_monitor import InboxMonitor, MonitorCoordinator, backoff_delay_ms, credential_key
from services.inbox_scanner import InboxScanner


class RecordingWait:
    def __init__(self, cancel_after: int | None = None):
        self.waits: List[float] = []
        self._cancel_after = cancel_after

    def __call__(self, cancel: threading.Event, seconds: float) -> bool:
        self.waits.append(seconds)
        if self._cancel_after is not None and len(self.waits) >= self._cancel_after:
            cancel.set()
            return True
        return False


def _monitor(reader: FakeReader, wait: RecordingWait) -> InboxMonitor:
    return InboxMonitor(InboxScanner(reader), max_attempts=60, base_delay_ms=2000, wait=wait)


def test_single_attempt_scans_once_without_waiting(credential):
    reader = FakeReader()
    wait = RecordingWait()

    result = _monitor(reader, wait).monitor(credential, max_attempts=1)

    assert result.status is MonitorStatus.NOT_FOUND
    assert result.attempts == 1
    assert reader.folders_called == [Folder.INBOX, Folder.DELETED_ITEMS, Folder.JUNK]
    assert wait.waits == []


def test_code_found_on_later_attempt_uses_linear_backoff(credential):
    reader = FakeReader(
        {
            Folder.INBOX: [
                [],
                [],
                [make_message("m", "Your verification code: 482913")],
            ]
        }
    )
    wait = RecordingWait()

    result = _monitor(reader, wait).monitor(credential)

    assert result.status is MonitorStatus.FOUND
    assert result.code == "482913"
    assert result.folder is Folder.INBOX
    assert result.attempts == 3
    assert wait.waits == [2.0, 2.1]


def test_exhausted_attempts_report_not_found(credential):
    reader = FakeReader({Folder.INBOX: [[make_message("m", "no digits here")]]})
    wait = RecordingWait()

    result = _monitor(reader, wait).monitor(credential, max_attempts=4, base_delay_ms=500)

    assert result == MonitorResult(status=MonitorStatus.NOT_FOUND, attempts=4)
    assert wait.waits == [0.5, 0.6, 0.7]


@pytest.mark.parametrize("status, kind", [(401, AuthErrorKind.UNAUTHORIZED), (403, AuthErrorKind.FORBIDDEN)])
def test_authorization_failure_aborts_without_waiting(credential, status, kind):
    reader = FakeReader(
        {
            Folder.INBOX: [[]],
            Folder.DELETED_ITEMS: [FetchError.from_status(status)],
        }
    )
    wait = RecordingWait()

    with pytest.raises(AuthError) as excinfo:
        _monitor(reader, wait).monitor(credential)

    assert excinfo.value.kind is kind
    assert reader.folders_called == [Folder.INBOX, Folder.DELETED_ITEMS]
    assert wait.waits == []


def test_soft_folder_failures_keep_polling(credential):
    reader = FakeReader(
        {
            Folder.INBOX: [FetchError.from_status(500), [make_message("m", "enter 246810 to continue")]],
        }
    )
    wait = RecordingWait()

    result = _monitor(reader, wait).monitor(credential, max_attempts=3)

    assert result.code == "246810"
    assert result.attempts == 2


def test_no_readable_folder_reports_unavailable(credential):
    reader = FakeReader({folder: [FetchError.from_status(502)] for folder in Folder})
    wait = RecordingWait()

    result = _monitor(reader, wait).monitor(credential, max_attempts=2)

    assert result.status is MonitorStatus.UNAVAILABLE
    assert result.attempts == 2


def test_cancel_during_wait_returns_cancelled(credential):
    reader = FakeReader()
    wait = RecordingWait(cancel_after=1)

    result = _monitor(reader, wait).monitor(credential, max_attempts=5)

    assert result.status is MonitorStatus.CANCELLED
    assert result.attempts == 1
    assert len(reader.calls) == 3


def test_cancel_before_start_scans_nothing(credential):
    reader = FakeReader()
    cancel = threading.Event()
    cancel.set()

    result = _monitor(reader, RecordingWait()).monitor(credential, cancel=cancel)

    assert result.status is MonitorStatus.CANCELLED
    assert result.attempts == 0
    assert reader.calls == []


def test_cancel_interrupts_a_real_wait_promptly(credential):
    monitor = InboxMonitor(InboxScanner(FakeReader()), max_attempts=10, base_delay_ms=60_000)
    cancel = threading.Event()
    outcome = {}

    worker = threading.Thread(target=lambda: outcome.setdefault("result", monitor.monitor(credential, cancel=cancel)))
    worker.start()
    cancel.set()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert outcome["result"].status is MonitorStatus.CANCELLED


def test_invalid_attempt_budget_is_rejected(credential):
    reader = FakeReader()

    with pytest.raises(ValidationError) as excinfo:
        _monitor(reader, RecordingWait()).monitor(credential, max_attempts=0)

    assert excinfo.value.field == "max_attempts"
    assert reader.calls == []


def test_negative_base_delay_is_rejected(credential):
    with pytest.raises(ValidationError) as excinfo:
        _monitor(FakeReader(), RecordingWait()).monitor(credential, base_delay_ms=-1)

    assert excinfo.value.field == "base_delay_ms"


def test_backoff_grows_by_one_hundred_ms_per_attempt():
    assert [backoff_delay_ms(2000, attempt) for attempt in range(4)] == [2000, 2100, 2200, 2300]


def test_coordinator_joins_running_monitor_for_same_credential(credential):
    reader = FakeReader()
    coordinator = MonitorCoordinator(_monitor(reader, RecordingWait()))
    running: Future = Future()
    coordinator._inflight[credential_key(credential)] = running
    running.set_result(MonitorResult(status=MonitorStatus.FOUND, attempts=2, code="135790"))

    result = coordinator.monitor(credential)

    assert result.code == "135790"
    assert reader.calls == []


def test_coordinator_runs_each_credential_independently(credential):
    reader = FakeReader({Folder.INBOX: [[make_message("m", "verification code: 864200")]]})
    coordinator = MonitorCoordinator(_monitor(reader, RecordingWait()))
    other = AccessCredential(token="another-token-9876543210", issued_for="client-id-0123456789")

    assert coordinator.monitor(credential).code == "864200"
    assert coordinator.monitor(other).code == "864200"
    assert coordinator.is_running(credential) is False
    assert len(reader.calls) == 2


def test_coordinator_releases_credential_after_auth_error(credential):
    reader = FakeReader({Folder.INBOX: [FetchError.from_status(401)]})
    coordinator = MonitorCoordinator(_monitor(reader, RecordingWait()))

    with pytest.raises(AuthError):
        coordinator.monitor(credential)

    assert coordinator.is_running(credential) is False


def test_coordinator_joiner_honours_its_own_cancel(credential):
    reader = FakeReader()
    coordinator = MonitorCoordinator(_monitor(reader, RecordingWait()))
    running: Future = Future()
    coordinator._inflight[credential_key(credential)] = running
    cancel = threading.Event()
    cancel.set()

    result = coordinator.monitor(credential, cancel=cancel)

    assert result == MonitorResult(status=MonitorStatus.CANCELLED, attempts=0)
    assert reader.calls == []
    assert running.done() is False


def test_coordinator_joiner_takes_over_when_owner_is_cancelled(credential):
    reader = FakeReader()
    coordinator = MonitorCoordinator(InboxMonitor(InboxScanner(reader), max_attempts=10, base_delay_ms=60_000))
    owner_cancel = threading.Event()
    outcome = {}

    owner = threading.Thread(
        target=lambda: outcome.setdefault("owner", coordinator.monitor(credential, cancel=owner_cancel))
    )
    owner.start()
    for _ in range(50):
        if coordinator.is_running(credential):
            break
        time.sleep(0.05)
    joiner = threading.Thread(
        target=lambda: outcome.setdefault("joiner", coordinator.monitor(credential, max_attempts=1))
    )
    joiner.start()
    time.sleep(0.2)
    owner_cancel.set()
    owner.join(timeout=5)
    joiner.join(timeout=5)

    assert not owner.is_alive() and not joiner.is_alive()
    assert outcome["owner"].status is MonitorStatus.CANCELLED
    assert outcome["joiner"].status is MonitorStatus.NOT_FOUND
    assert outcome["joiner"].attempts == 1
    assert coordinator.is_running(credential) is False
