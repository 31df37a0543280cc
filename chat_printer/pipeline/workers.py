"""
Pipeline workers: chat ingestion, the countdown timer and the render loop.

Each worker runs on its own thread except the render loop, which runs on the
calling thread and is the only code that touches the canvas. Workers talk
through channels and stop when the shared shutdown flag is set.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from chat_printer.chat import ChatEvent, ChatEventSource
from chat_printer.chat.moderation import ModerationFilter
from chat_printer.core.config import ensure_dir
from chat_printer.core.errors import ModerationReject, PlacementError
from chat_printer.notify import NotificationSink
from chat_printer.pipeline.canvas import Canvas
from chat_printer.pipeline.channels import Channel, ChannelClosed, ShutdownFlag
from chat_printer.pipeline.commands import Clear, Draw, Quit, UiCommand
from chat_printer.placement import PlacementParser
from chat_printer.printing.job import PrintJob
from chat_printer.printing.orchestrator import enqueue_job
from chat_printer.printing.render import Renderer

logger = logging.getLogger(__name__)

IDLE_INTERVAL = 0.1
TICK_SECONDS = 1.0
UI_POLL_INTERVAL = 0.2


def _worker_failed(
    name: str,
    error: Exception,
    ui: Channel[UiCommand],
    shutdown: ShutdownFlag,
    notifier: Optional[NotificationSink],
) -> None:
    """Notify, stop the pipeline and wake the render loop after a worker crash."""
    logger.exception("%s worker failed: %s", name.capitalize(), error)
    if notifier is not None:
        notifier.send(f"Chat printer stopped: {name} worker failed: {error}", priority="high")
    shutdown.set(f"{name} worker failed")
    ui.send(Quit(reason=f"{name} worker failed"))


# ----------------------------------------------------------------------
# Ingestion
# ----------------------------------------------------------------------


class Ingestor:
    """
    Turns chat events into UI commands.

    Order of checks: operator quit command, moderation, placement parsing.
    """

    def __init__(
        self,
        source: ChatEventSource,
        ui: Channel[UiCommand],
        shutdown: ShutdownFlag,
        parser: PlacementParser,
        moderation: Optional[ModerationFilter] = None,
        *,
        notifier: Optional[NotificationSink] = None,
        operators: Iterable[str] = (),
        quit_command: str = "!quit",
        reply_on_failure: bool = False,
    ) -> None:
        self.source = source
        self.ui = ui
        self.shutdown = shutdown
        self.parser = parser
        self.moderation = moderation
        self.operators = {o.lower() for o in operators}
        self.quit_command = quit_command.strip().lower()
        self.reply_on_failure = reply_on_failure
        self.notifier = notifier
        self.failure: Optional[Exception] = None
        self.thread: Optional[threading.Thread] = None

    def handle(self, event: ChatEvent) -> Optional[UiCommand]:
        text = event.text.strip()
        if not text:
            return None

        if self.quit_command and text.lower() == self.quit_command:
            if event.sender.lower() in self.operators:
                logger.info("Quit requested by %s", event.sender)
                return Quit(reason=f"quit by {event.sender}")
            logger.info("Ignoring quit command from non-operator %s", event.sender)
            return None

        if self.moderation is not None:
            try:
                self.moderation.check(event.sender, text)
            except ModerationReject as e:
                logger.info("Rejected message from %s: %s", event.sender, e.reason)
                self.source.reply(event.channel, f"@{event.sender} your message was not accepted ({e.reason})")
                return None

        try:
            placement = self.parser.parse(text)
        except PlacementError as e:
            logger.info("No placement in message from %s: %s", event.sender, e)
            if self.reply_on_failure:
                self.source.reply(event.channel, f"@{event.sender} use: <text> <x>,<y>[,<size>]")
            return None
        logger.debug("Placement from %s: %r", event.sender, placement)
        return Draw(placement=placement, sender=event.sender)

    def run(self) -> None:
        exhausted_logged = False
        try:
            while not self.shutdown.is_set():
                events = self.source.poll()
                for event in events:
                    command = self.handle(event)
                    if command is not None:
                        self.ui.send(command)
                    if isinstance(command, Quit):
                        return
                if events:
                    continue
                if getattr(self.source, "exhausted", False):
                    if not exhausted_logged:
                        logger.info("Chat source exhausted; waiting for shutdown")
                        exhausted_logged = True
                    self.shutdown.wait(TICK_SECONDS)
                else:
                    self.shutdown.wait(IDLE_INTERVAL)
        except Exception as e:
            self.failure = e
            _worker_failed("ingestion", e, self.ui, self.shutdown, self.notifier)
        finally:
            self.source.close()

    def start_thread(self) -> threading.Thread:
        t = threading.Thread(target=self.run, daemon=True, name="ingestion")
        t.start()
        self.thread = t
        return t


# ----------------------------------------------------------------------
# Countdown timer
# ----------------------------------------------------------------------


def format_countdown(seconds: int, prefix: str = "") -> str:
    """
    >>> format_countdown(65, "printing starts in: ")
    'printing starts in: 1:05'
    """
    seconds = max(int(seconds), 0)
    return f"{prefix}{seconds // 60}:{seconds % 60:02d}"


class CountdownTimer:
    """
    Counts down `clock_time` seconds, writing the remaining time to the status
    file every tick. At zero it asks the render loop to print and starts over.
    """

    def __init__(
        self,
        ui: Channel[UiCommand],
        shutdown: ShutdownFlag,
        clock_time: int,
        status_file: Optional[str] = None,
        prefix: str = "",
        tick: float = TICK_SECONDS,
        notifier: Optional[NotificationSink] = None,
    ) -> None:
        self.ui = ui
        self.shutdown = shutdown
        self.clock_time = max(int(clock_time), 1)
        self.status_file = status_file
        self.prefix = prefix
        self.tick = tick
        self.remaining = self.clock_time
        self.cycles = 0
        self.notifier = notifier
        self.failure: Optional[Exception] = None
        self.thread: Optional[threading.Thread] = None

    def write_status(self) -> None:
        if not self.status_file:
            return
        try:
            with open(self.status_file, "w", encoding="utf-8") as f:
                f.write(format_countdown(self.remaining, self.prefix))
        except OSError as e:
            logger.warning("Failed to write timer file %s: %s", self.status_file, e)

    def advance(self) -> bool:
        """
        Count one second down. Returns True when the countdown wrapped and
        Clear was emitted.
        """
        self.remaining -= 1
        if self.remaining > 0:
            return False
        self.cycles += 1
        logger.info("Countdown finished; printing canvas")
        self.ui.send(Clear())
        self.remaining = self.clock_time
        return True

    def run(self) -> None:
        try:
            while not self.shutdown.is_set():
                self.write_status()
                if self.shutdown.wait(self.tick):
                    break
                self.advance()
        except Exception as e:
            self.failure = e
            _worker_failed("timer", e, self.ui, self.shutdown, self.notifier)

    def start_thread(self) -> threading.Thread:
        t = threading.Thread(target=self.run, daemon=True, name="timer")
        t.start()
        self.thread = t
        return t


# ----------------------------------------------------------------------
# Render loop
# ----------------------------------------------------------------------


@dataclass
class RenderStats:
    drawn: int = 0
    failed: int = 0
    printed: int = 0
    skipped_blank: int = 0
    archived: List[str] = field(default_factory=list)


class RenderLoop:
    """
    Sole owner of the canvas and consumer of the UI channel.
    """

    def __init__(
        self,
        canvas: Canvas,
        renderer: Renderer,
        ui: Channel[UiCommand],
        jobs: Channel[PrintJob],
        shutdown: ShutdownFlag,
        *,
        save_path: Optional[str] = None,
        quantity: int = 1,
        density: int = 5,
        label_type: int = 1,
    ) -> None:
        self.canvas = canvas
        self.renderer = renderer
        self.ui = ui
        self.jobs = jobs
        self.shutdown = shutdown
        self.save_path = save_path
        self.quantity = quantity
        self.density = density
        self.label_type = label_type
        self.stats = RenderStats()

    def handle(self, command: UiCommand) -> bool:
        """
        Apply one command. Returns False when the loop should end.
        """
        if isinstance(command, Draw):
            if self.renderer.place(self.canvas.image, command.placement):
                self.stats.drawn += 1
            else:
                self.stats.failed += 1
            return True
        if isinstance(command, Clear):
            return self.flush()
        if isinstance(command, Quit):
            logger.info("Render loop quitting: %s", command.reason)
            self.shutdown.set(command.reason)
            return False
        logger.warning("Unknown UI command: %r", command)
        return True

    def flush(self) -> bool:
        """
        Send the canvas to the printer and blank it. A blank canvas is skipped.
        Returns False when the print channel is closed.
        """
        if self.canvas.is_blank():
            self.stats.skipped_blank += 1
            logger.info("Canvas is blank; nothing to print")
            return True
        if self.jobs.closed:
            logger.warning("Print channel closed; stopping render loop")
            self.shutdown.set("print channel closed")
            return False

        snapshot = self.canvas.snapshot()
        job = PrintJob.from_image(snapshot, quantity=self.quantity, density=self.density, label_type=self.label_type)
        if enqueue_job(self.jobs, job, origin="timer"):
            self.stats.printed += 1
        elif self.jobs.closed:
            self.shutdown.set("print channel closed")
            return False
        self.archive(snapshot, job.id)
        self.canvas.clear()
        return True

    def archive(self, image: Any, job_id: str) -> Optional[str]:
        if not self.save_path:
            return None
        try:
            ensure_dir(self.save_path)
            path = os.path.join(self.save_path, f"{time.strftime('%Y%m%d-%H%M%S')}-{job_id[:8]}.png")
            image.save(path, format="PNG")
        except OSError as e:
            logger.warning("Failed to archive canvas to %s: %s", self.save_path, e)
            return None
        self.stats.archived.append(path)
        logger.info("Archived canvas to %s", path)
        return path

    def run(self) -> RenderStats:
        while not self.shutdown.is_set():
            try:
                command = self.ui.receive(timeout=UI_POLL_INTERVAL)
            except ChannelClosed:
                break
            if command is None:
                continue
            if not self.handle(command):
                break
        logger.info(
            "Render loop stopped: drawn=%d failed=%d printed=%d",
            self.stats.drawn,
            self.stats.failed,
            self.stats.printed,
        )
        return self.stats

    def status(self) -> Dict[str, Any]:
        return {
            "drawn": self.stats.drawn,
            "failed": self.stats.failed,
            "printed": self.stats.printed,
            "skipped_blank": self.stats.skipped_blank,
        }


__all__ = [
    "CountdownTimer",
    "Ingestor",
    "RenderLoop",
    "RenderStats",
    "format_countdown",
]
