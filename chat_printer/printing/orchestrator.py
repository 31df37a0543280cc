"""
Printer worker: job registry, heartbeat monitoring and print orchestration.

This module owns:
- An in-memory job registry with a basic lifecycle (queued -> running -> success/error)
- The heartbeat monitor deciding when an unresponsive printer becomes fatal
- The orchestrator loop that drains the print channel into a `PrinterSession`
- A dry-run drain used when the printer is disabled

The orchestrator is the only place that decides whether a printer failure is
transient (the job fails, printing continues) or fatal (notify, shut down).
"""

from __future__ import annotations

import logging
import os
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from chat_printer.core.errors import ChatPrinterError, DeviceFatal, PrinterError
from chat_printer.notify import NotificationSink
from chat_printer.pipeline.channels import Channel, ChannelClosed, ShutdownFlag
from chat_printer.printing.bitmap import count_dark
from chat_printer.printing.job import PrintJob
from chat_printer.printing.session import PrinterSession

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 15.0
MAX_HEARTBEAT_FAILURES = 5
LOOP_PERIOD = 0.5
RECOVERY_DELAY = 0.5
RECOVERY_ATTEMPTS = 2

JOBS: Dict[str, Dict[str, Any]] = {}
JOBS_LOCK = threading.RLock()
JOBS_MAX = int(os.environ.get("CHATPRINTER_JOBS_MAX", "200"))


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _prune_jobs_if_needed() -> None:
    # Reentrant lock: callers may already hold JOBS_LOCK.
    with JOBS_LOCK:
        while len(JOBS) > JOBS_MAX:
            oldest_id = min(JOBS.values(), key=lambda j: j.get("created_at", ""))["id"]
            JOBS.pop(oldest_id, None)


def _create_job(job: PrintJob, meta: Optional[Dict[str, Any]] = None) -> str:
    now = _utc_now_iso()
    entry = {
        "id": job.id,
        "type": "label",
        "status": "queued",
        "width": job.width,
        "height": job.height,
        "quantity": job.quantity,
        "created_at": job.created_at,
        "updated_at": now,
    }
    if meta:
        entry.update(meta)
    with JOBS_LOCK:
        JOBS[job.id] = entry
        _prune_jobs_if_needed()
    return job.id


def _update_job(job_id: Optional[str], **updates: Any) -> None:
    if not job_id:
        return
    with JOBS_LOCK:
        job = JOBS.get(job_id)
        if not job:
            return
        job.update(updates)
        job["updated_at"] = _utc_now_iso()


def enqueue_job(jobs: Channel[PrintJob], job: PrintJob, origin: Optional[str] = None) -> bool:
    """
    Register `job` and hand it to the print channel.

    Returns False when the channel refused it (full or closed); the job is then
    recorded as an error.
    """
    _create_job(job, meta={"origin": origin} if origin else None)
    if jobs.send(job):
        logger.info("Queued print job id=%s queue_size=%d", job.id, jobs.qsize())
        return True
    _update_job(job.id, status="error", error="print_channel_unavailable")
    return False


def get_job(job_id: str) -> Optional[Dict[str, Any]]:
    with JOBS_LOCK:
        job = JOBS.get(job_id)
        return dict(job) if job else None


def list_jobs() -> List[Dict[str, Any]]:
    """
    Return a list of jobs sorted by created_at descending.
    """
    with JOBS_LOCK:
        items = [dict(v) for v in JOBS.values()]
    items.sort(key=lambda j: j.get("created_at", ""), reverse=True)
    return items


class HeartbeatMonitor:
    """
    Tracks heartbeat outcomes. `record_failure()` returns True exactly once,
    on the failure that reaches `max_failures` in a row.
    """

    def __init__(self, max_failures: int = MAX_HEARTBEAT_FAILURES, clock: Callable[[], float] = time.monotonic):
        self.max_failures = max_failures
        self._clock = clock
        self.last_heartbeat: float = clock()
        self.consecutive_failures = 0

    def due(self, interval: float) -> bool:
        return self._clock() - self.last_heartbeat >= interval

    def record_success(self) -> None:
        self.last_heartbeat = self._clock()
        if self.consecutive_failures:
            logger.info("Heartbeat recovered after %d failure(s)", self.consecutive_failures)
        self.consecutive_failures = 0

    def record_failure(self) -> bool:
        self.last_heartbeat = self._clock()
        self.consecutive_failures += 1
        return self.consecutive_failures == self.max_failures


class JobOrchestrator:
    """
    Printer worker loop.

    Usage::

        orchestrator = JobOrchestrator(session, print_channel, shutdown, notifier)
        thread = orchestrator.start_thread()
    """

    def __init__(
        self,
        session: PrinterSession,
        jobs: Channel[PrintJob],
        shutdown: ShutdownFlag,
        notifier: Optional[NotificationSink] = None,
        *,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        loop_period: float = LOOP_PERIOD,
        recovery_delay: float = RECOVERY_DELAY,
        auto_shutdown: int = 0,
        monitor: Optional[HeartbeatMonitor] = None,
    ) -> None:
        self.session = session
        self.jobs = jobs
        self.shutdown = shutdown
        self.notifier = notifier
        self.heartbeat_interval = heartbeat_interval
        self.loop_period = loop_period
        self.recovery_delay = recovery_delay
        self.auto_shutdown = auto_shutdown
        self.monitor = monitor or HeartbeatMonitor()
        self.fatal: Optional[DeviceFatal] = None
        self.thread: Optional[threading.Thread] = None
        self.printed = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Check the printer answers before accepting jobs.

        Raises:
            DeviceFatal: The initial heartbeat failed.
        """
        try:
            self.session.heartbeat()
        except PrinterError as e:
            raise DeviceFatal("Printer did not answer the initial heartbeat", {"error": str(e)}) from e
        self.monitor.record_success()
        logger.info("Printer is responding")

        if self.auto_shutdown > 0:
            try:
                self.session.set_auto_shutdown_time(self.auto_shutdown)
                logger.info("Printer auto-shutdown time set to %d", self.auto_shutdown)
            except PrinterError as e:
                logger.warning("Failed to set printer auto-shutdown time: %s", e)

    def run(self, skip_start: bool = False) -> None:
        """
        Worker entry point. Never raises; a fatal error is kept on `self.fatal`.

        Pass `skip_start=True` when `start()` already ran on the caller's thread.
        """
        try:
            if not skip_start:
                self.start()
            while not self.shutdown.is_set():
                if not self.step():
                    break
        except DeviceFatal as e:
            self.handle_fatal(e)
        except Exception as e:
            logger.exception("Printer worker crashed: %s", e)
            self.handle_fatal(DeviceFatal("Printer worker crashed", {"error": str(e)}))
        logger.info("Printer worker stopped (%d label(s) printed)", self.printed)

    def start_thread(self, skip_start: bool = False) -> threading.Thread:
        t = threading.Thread(target=self.run, args=(skip_start,), daemon=True, name="printer")
        t.start()
        self.thread = t
        logger.info("Printer worker started")
        return t

    # ------------------------------------------------------------------
    # Loop body
    # ------------------------------------------------------------------

    def step(self) -> bool:
        """
        One loop iteration: heartbeat when due, then at most one job.

        Returns False when the print channel is closed and drained.

        Raises:
            DeviceFatal: Heartbeats kept failing or recovery failed.
        """
        if self.monitor.due(self.heartbeat_interval):
            self.check_heartbeat()

        try:
            job = self.jobs.receive(timeout=self.loop_period)
        except ChannelClosed:
            logger.info("Print channel closed")
            return False
        if job is not None:
            self.process(job)
        return True

    def check_heartbeat(self) -> None:
        try:
            self.session.heartbeat()
        except PrinterError as e:
            escalate = self.monitor.record_failure()
            logger.warning(
                "Heartbeat failed (%d/%d): %s",
                self.monitor.consecutive_failures,
                self.monitor.max_failures,
                e,
            )
            if escalate:
                raise DeviceFatal(
                    "Printer stopped answering heartbeats",
                    {"failures": self.monitor.consecutive_failures},
                ) from e
            return
        self.monitor.record_success()
        logger.debug("Heartbeat ok")

    def process(self, job: PrintJob) -> bool:
        """
        Print one job. Returns True on success; a transient failure marks the
        job as error and returns False.

        Raises:
            DeviceFatal: The printer did not recover after the failure.
        """
        _update_job(job.id, status="running")
        logger.info("Printing job id=%s (%d dark pixels)", job.id, count_dark(job.rows))
        try:
            self.session.print_label(
                job.rows,
                job.width,
                job.height,
                quantity=job.quantity,
                label_type=job.label_type,
                density=job.density,
            )
        except ValueError as e:
            # Rejected before anything reached the device.
            logger.error("Print job id=%s rejected: %s", job.id, e)
            _update_job(job.id, status="error", error=str(e))
            return False
        except PrinterError as e:
            logger.warning("Print job id=%s failed: %s", job.id, e)
            _update_job(job.id, status="error", error=str(e))
            self.recover(e)
            return False
        _update_job(job.id, status="success")
        self.printed += 1
        return True

    def recover(self, error: PrinterError) -> None:
        """
        Staged recovery after a failed print: up to two waits each followed by
        a heartbeat.

        Raises:
            DeviceFatal: Both recovery heartbeats failed.
        """
        for stage in range(1, RECOVERY_ATTEMPTS + 1):
            time.sleep(self.recovery_delay)
            try:
                self.session.heartbeat()
            except PrinterError as e:
                logger.warning("Recovery heartbeat %d/%d failed: %s", stage, RECOVERY_ATTEMPTS, e)
                continue
            self.monitor.record_success()
            logger.info("Printer recovered after stage %d; continuing", stage)
            return
        raise DeviceFatal("Printer did not recover after a failed print", {"error": str(error)}) from error

    def handle_fatal(self, error: DeviceFatal) -> None:
        """
        Notify, stop the pipeline and release the printer. No reconnect is attempted.
        """
        self.fatal = error
        logger.error("Fatal printer error: %s", error)
        if self.notifier is not None:
            self.notifier.send(f"Chat printer stopped: {error}", priority="high")
        self.shutdown.set(f"fatal printer error: {error.message}")
        self.jobs.close()
        try:
            self.session.close()
        except ChatPrinterError as e:
            logger.warning("Error while closing printer session: %s", e)

    def status(self) -> Dict[str, Any]:
        alive = bool(self.thread) and self.thread.is_alive()  # type: ignore[union-attr]
        return {
            "mode": "printer",
            "worker_started": self.thread is not None,
            "worker_alive": alive,
            "queue_size": self.jobs.qsize(),
            "session_state": self.session.state.value,
            "heartbeat_failures": self.monitor.consecutive_failures,
            "printed": self.printed,
            "fatal": str(self.fatal) if self.fatal else None,
        }


class DryRunPrinter:
    """
    Drains the print channel without a printer, marking each job as printed.
    """

    def __init__(self, jobs: Channel[PrintJob], shutdown: ShutdownFlag, loop_period: float = LOOP_PERIOD):
        self.jobs = jobs
        self.shutdown = shutdown
        self.loop_period = loop_period
        self.thread: Optional[threading.Thread] = None
        self.fatal: Optional[DeviceFatal] = None
        self.printed = 0

    def run(self) -> None:
        logger.info("Printer disabled; jobs are logged and discarded")
        while not self.shutdown.is_set():
            try:
                job = self.jobs.receive(timeout=self.loop_period)
            except ChannelClosed:
                break
            if job is None:
                continue
            _update_job(job.id, status="success", dry_run=True)
            self.printed += 1
            logger.info(
                "Dry run: job id=%s %dx%d with %d dark pixels",
                job.id,
                job.width,
                job.height,
                count_dark(job.rows),
            )

    def start_thread(self) -> threading.Thread:
        t = threading.Thread(target=self.run, daemon=True, name="printer")
        t.start()
        self.thread = t
        return t

    def status(self) -> Dict[str, Any]:
        alive = bool(self.thread) and self.thread.is_alive()  # type: ignore[union-attr]
        return {
            "mode": "dry_run",
            "worker_started": self.thread is not None,
            "worker_alive": alive,
            "queue_size": self.jobs.qsize(),
            "session_state": None,
            "heartbeat_failures": 0,
            "printed": self.printed,
            "fatal": None,
        }


__all__ = [
    "JOBS",
    "JOBS_MAX",
    "DryRunPrinter",
    "HeartbeatMonitor",
    "JobOrchestrator",
    "enqueue_job",
    "get_job",
    "list_jobs",
]
