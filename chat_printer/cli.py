"""
Command line entry point: builds every collaborator from Settings and runs the pipeline.

Exit status: 0 on a normal stop, 1 when the printer or a pipeline worker failed
fatally, 2 when the configuration is invalid.
"""

from __future__ import annotations

import argparse
import logging
import threading
from typing import Any, Dict, List, Optional

from chat_printer import create_app
from chat_printer.chat import ConsoleChatSource, IrcChatSource, ModerationFilter
from chat_printer.chat.console import CONSOLE_SENDER
from chat_printer.core.assets import IconLibrary
from chat_printer.core.config import Settings, load_settings
from chat_printer.core.errors import ConfigInvalid, DeviceFatal, PrinterError
from chat_printer.core.logging import configure_logging
from chat_printer.notify import NtfyNotifier
from chat_printer.pipeline import Canvas, Channel, ShutdownFlag
from chat_printer.pipeline.workers import CountdownTimer, Ingestor, RenderLoop
from chat_printer.placement import PlacementParser
from chat_printer.placement.extractor import OpenAIPlacementExtractor
from chat_printer.printing.orchestrator import DryRunPrinter, JobOrchestrator
from chat_printer.printing.render import Renderer
from chat_printer.printing.session import PrinterSession
from chat_printer.transport import open_transport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2
JOIN_TIMEOUT = 5.0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chat-printer",
        description="Print labels drawn by chat messages on a NIIMBOT label printer",
    )
    parser.add_argument("--config", default=None, help="Path to config.json (default: CHATPRINTER_CONFIG_PATH or XDG config)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--test-text", action="store_true", help="Read messages from stdin instead of IRC")
    parser.add_argument("--no-printer", action="store_true", help="Do not open the printer; log jobs instead")
    return parser.parse_args(argv)


def build_parser(settings: Settings) -> PlacementParser:
    extractor = OpenAIPlacementExtractor(settings) if settings.text_parser_enabled else None
    return PlacementParser(settings.width, settings.height, settings.max_size, extractor=extractor)


def build_source(settings: Settings):
    if settings.test_text:
        return ConsoleChatSource()
    return IrcChatSource(
        settings.irc_host,
        settings.irc_port,
        settings.irc_username,
        settings.irc_token,
        settings.irc_channel,
    )


def build_printer(settings: Settings, jobs: Channel, shutdown: ShutdownFlag, notifier: NtfyNotifier):
    """
    Open the printer and run the initial heartbeat on the calling thread.

    Raises:
        DeviceFatal: The printer could not be opened or did not answer.
    """
    if settings.disable_printer:
        return DryRunPrinter(jobs, shutdown)
    try:
        transport = open_transport(settings)
    except PrinterError as e:
        raise DeviceFatal("Could not open the printer", {"error": str(e)}) from e
    orchestrator = JobOrchestrator(
        PrinterSession(transport),
        jobs,
        shutdown,
        notifier,
        auto_shutdown=settings.shutdown_time,
    )
    try:
        orchestrator.start()
    except DeviceFatal as e:
        orchestrator.handle_fatal(e)
        raise
    return orchestrator


def run(settings: Settings) -> int:
    shutdown = ShutdownFlag()
    ui: Channel = Channel("ui")
    jobs: Channel = Channel("print", maxsize=settings.print_queue_size)
    notifier = NtfyNotifier(settings.notify_url)

    try:
        printer = build_printer(settings, jobs, shutdown, notifier)
    except DeviceFatal as e:
        logger.error("Printer unavailable: %s", e)
        # handle_fatal already notified when the initial heartbeat failed
        if not shutdown.is_set():
            notifier.send(f"Chat printer could not start: {e}", priority="high")
        return EXIT_FATAL

    parser = build_parser(settings)
    operators = list(settings.operators)
    if settings.test_text:
        operators.append(CONSOLE_SENDER)
    ingestor = Ingestor(
        build_source(settings),
        ui,
        shutdown,
        parser,
        ModerationFilter(settings.blocked_words, enabled=settings.censoring_enabled),
        notifier=notifier,
        operators=operators,
        quit_command=settings.quit_command,
        reply_on_failure=settings.test_text,
    )
    timer = CountdownTimer(
        ui,
        shutdown,
        settings.clock_time,
        status_file=settings.timer_file,
        prefix=settings.timer_prefix,
        notifier=notifier,
    )
    render_loop = RenderLoop(
        Canvas(settings.width, settings.height),
        Renderer(
            IconLibrary.load(settings.icons_path),
            font_path=settings.font_path,
            invert_overlapping_text=settings.invert_overlapping_text,
        ),
        ui,
        jobs,
        shutdown,
        save_path=settings.save_path,
        quantity=settings.label_quantity,
        density=settings.label_density,
        label_type=settings.label_type,
    )

    def status() -> Dict[str, Any]:
        data = printer.status()
        data.update(render_loop.status())
        data["countdown"] = timer.remaining
        data["shutdown"] = shutdown.is_set()
        return data

    if isinstance(printer, JobOrchestrator):
        printer.start_thread(skip_start=True)
    else:
        printer.start_thread()
    ingestor.start_thread()
    timer.start_thread()
    if settings.status_port > 0:
        start_status_server(settings.status_port, status)

    logger.info("Pipeline running (%dx%d canvas, flush every %ds)", settings.width, settings.height, settings.clock_time)
    try:
        render_loop.run()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        shutdown.set("render loop finished")
        if printer.thread is not None:
            printer.thread.join(JOIN_TIMEOUT)
        if parser.extractor is not None:
            parser.extractor.close()  # type: ignore[attr-defined]

    if printer.fatal is not None:
        return EXIT_FATAL
    if ingestor.failure is not None or timer.failure is not None:
        return EXIT_FATAL
    return EXIT_OK


def start_status_server(port: int, status_provider) -> threading.Thread:
    app = create_app(status_provider=status_provider)
    t = threading.Thread(
        target=app.run,
        kwargs={"host": "0.0.0.0", "port": port, "use_reloader": False, "threaded": True},
        daemon=True,
        name="status",
    )
    t.start()
    logger.info("Status server listening on port %d", port)
    return t


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.INFO)

    overrides: Dict[str, Any] = {}
    if args.test_text:
        overrides["test_text"] = True
    if args.no_printer:
        overrides["disable_printer"] = True
    try:
        settings = load_settings(args.config, overrides=overrides)
    except ConfigInvalid as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG

    return run(settings)


__all__ = ["main", "parse_args", "run"]
