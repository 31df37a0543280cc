from typing import List, Tuple

import pytest

from chat_printer.core.errors import DeviceFatal, NoResponse
from chat_printer.pipeline.channels import Channel, ShutdownFlag
from chat_printer.printing import orchestrator
from chat_printer.printing.job import PrintJob
from chat_printer.printing.orchestrator import DryRunPrinter, HeartbeatMonitor, JobOrchestrator, enqueue_job, get_job
from chat_printer.printing.session import SessionState


class FakeSession:
    def __init__(self, heartbeats: List[bool] = None, print_error: Exception = None):
        self.heartbeat_results = list(heartbeats or [])
        self.heartbeats = 0
        self.print_error = print_error
        self.printed: List[Tuple[int, int, int]] = []
        self.shutdown_time = None
        self.closed = False
        self.state = SessionState.IDLE

    def heartbeat(self):
        self.heartbeats += 1
        ok = self.heartbeat_results.pop(0) if self.heartbeat_results else True
        if not ok:
            raise NoResponse(0xDC, expected=0xDD, attempts=5)

    def print_label(self, rows, width, height, quantity=1, label_type=1, density=5):
        if self.print_error is not None:
            raise self.print_error
        self.printed.append((width, height, quantity))

    def set_auto_shutdown_time(self, value):
        self.shutdown_time = value

    def close(self):
        self.closed = True


class FakeNotifier:
    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def send(self, message: str, priority: str = "default") -> bool:
        self.sent.append((message, priority))
        return True


def _job() -> PrintJob:
    return PrintJob(rows=(bytes([0] * 8),), width=8, height=1)


def _orchestrator(session, **kwargs):
    jobs: Channel = Channel("print", maxsize=8)
    notifier = FakeNotifier()
    orch = JobOrchestrator(session, jobs, ShutdownFlag(), notifier, loop_period=0.01, **kwargs)
    return orch, jobs, notifier


@pytest.fixture
def sleeps(monkeypatch):
    calls: List[float] = []
    monkeypatch.setattr(orchestrator.time, "sleep", lambda s: calls.append(s))
    return calls


def test_monitor_escalates_exactly_once():
    monitor = HeartbeatMonitor(max_failures=5)
    results = [monitor.record_failure() for _ in range(7)]
    assert results == [False, False, False, False, True, False, False]


def test_five_failed_heartbeats_are_fatal():
    orch, _, _ = _orchestrator(FakeSession(heartbeats=[False] * 5))
    for _ in range(4):
        orch.check_heartbeat()
    with pytest.raises(DeviceFatal):
        orch.check_heartbeat()


def test_interrupted_failures_do_not_escalate():
    pattern = [False] * 4 + [True] + [False] * 4
    orch, _, _ = _orchestrator(FakeSession(heartbeats=pattern))
    for _ in pattern:
        orch.check_heartbeat()
    assert orch.monitor.consecutive_failures == 4


def test_heartbeat_due_after_interval():
    now = [100.0]
    monitor = HeartbeatMonitor(clock=lambda: now[0])
    assert not monitor.due(15)
    now[0] = 114.9
    assert not monitor.due(15)
    now[0] = 115.0
    assert monitor.due(15)


def test_start_fails_fast_without_heartbeat():
    orch, _, _ = _orchestrator(FakeSession(heartbeats=[False]))
    with pytest.raises(DeviceFatal):
        orch.start()


def test_start_sets_auto_shutdown_when_configured():
    session = FakeSession()
    orch, _, _ = _orchestrator(session, auto_shutdown=3)
    orch.start()
    assert session.shutdown_time == 3


def test_step_prints_queued_job():
    session = FakeSession()
    orch, jobs, _ = _orchestrator(session)
    job = _job()
    assert enqueue_job(jobs, job)
    assert get_job(job.id)["status"] == "queued"
    orch.start()
    assert orch.step() is True
    assert session.printed == [(8, 1, 1)]
    assert get_job(job.id)["status"] == "success"


def test_transient_failure_recovers_on_second_stage(sleeps):
    session = FakeSession(heartbeats=[False, True], print_error=NoResponse(0x01, expected=0x02, attempts=5))
    orch, jobs, notifier = _orchestrator(session)
    job = _job()
    enqueue_job(jobs, job)
    assert orch.process(jobs.receive(timeout=0.1)) is False
    assert sleeps == [0.5, 0.5]
    assert get_job(job.id)["status"] == "error"
    assert notifier.sent == []
    assert not orch.shutdown.is_set()


def test_failed_recovery_is_fatal(sleeps):
    session = FakeSession(heartbeats=[False, False], print_error=NoResponse(0x01, expected=0x02, attempts=5))
    orch, _, _ = _orchestrator(session)
    with pytest.raises(DeviceFatal):
        orch.process(_job())
    assert sleeps == [0.5, 0.5]


def test_run_handles_fatal_start():
    session = FakeSession(heartbeats=[False])
    orch, jobs, notifier = _orchestrator(session)
    orch.run()
    assert orch.fatal is not None
    assert len(notifier.sent) == 1
    assert notifier.sent[0][1] == "high"
    assert orch.shutdown.is_set()
    assert jobs.closed
    assert session.closed
    assert jobs.send(_job()) is False


def test_run_stops_on_shutdown():
    session = FakeSession()
    orch, _, _ = _orchestrator(session)
    orch.shutdown.set("test")
    orch.run()
    assert orch.fatal is None
    assert session.heartbeats == 1


def test_status_reports_worker_state():
    orch, jobs, _ = _orchestrator(FakeSession())
    enqueue_job(jobs, _job())
    status = orch.status()
    assert status["queue_size"] == 1
    assert status["session_state"] == "idle"
    assert status["worker_started"] is False


def test_enqueue_on_full_channel_marks_error():
    jobs: Channel = Channel("print", maxsize=1)
    first, second = _job(), _job()
    assert enqueue_job(jobs, first)
    assert not enqueue_job(jobs, second)
    assert get_job(second.id)["status"] == "error"


def test_job_registry_is_pruned(monkeypatch):
    monkeypatch.setattr(orchestrator, "JOBS_MAX", 2)
    jobs: Channel = Channel("print")
    created = [PrintJob(rows=(b"\xff",), width=1, height=1, created_at=f"2024-01-0{i}") for i in range(1, 4)]
    for job in created:
        enqueue_job(jobs, job)
    assert get_job(created[0].id) is None
    assert [j["id"] for j in orchestrator.list_jobs()] == [created[2].id, created[1].id]


def test_dry_run_drains_channel():
    jobs: Channel = Channel("print")
    job = _job()
    enqueue_job(jobs, job)
    jobs.close()
    printer = DryRunPrinter(jobs, ShutdownFlag(), loop_period=0.01)
    printer.run()
    assert printer.printed == 1
    assert get_job(job.id)["status"] == "success"


def test_unencodable_job_is_rejected_without_recovery(sleeps):
    session = FakeSession(print_error=ValueError("width 2000 exceeds the 1992 pixel row limit"))
    orch, jobs, notifier = _orchestrator(session)
    job = _job()
    enqueue_job(jobs, job)
    jobs.close()
    orch.run()
    assert orch.fatal is None
    assert notifier.sent == []
    assert sleeps == []
    assert get_job(job.id)["status"] == "error"
    assert "1992" in get_job(job.id)["error"]
