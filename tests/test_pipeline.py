import io
import threading
from typing import List

import pytest
from PIL import Image

from chat_printer.chat import ChatEvent, ModerationFilter
from chat_printer.core.assets import IconLibrary
from chat_printer.pipeline import Canvas, Channel, ChannelClosed, Clear, Draw, Quit, ShutdownFlag
from chat_printer.pipeline.workers import CountdownTimer, Ingestor, RenderLoop, format_countdown
from chat_printer.placement import Placement, PlacementParser
from chat_printer.printing.bitmap import count_dark
from chat_printer.printing.render import Renderer


class FakeSource:
    def __init__(self, batches=None):
        self.batches = list(batches or [])
        self.replies: List[tuple] = []
        self.closed = False

    def poll(self):
        return self.batches.pop(0) if self.batches else []

    def reply(self, channel, text):
        self.replies.append((channel, text))

    def close(self):
        self.closed = True


class FakeNotifier:
    def __init__(self):
        self.sent: List[tuple] = []

    def send(self, message, priority="default"):
        self.sent.append((message, priority))
        return True


class FakeRenderer:
    """Draws a 4x4 black square at the placement."""

    def __init__(self):
        self.placed: List[Placement] = []

    def place(self, canvas, placement):
        self.placed.append(placement)
        canvas.paste(0, (placement.x, placement.y, placement.x + 4, placement.y + 4))
        return True


def _icon_library() -> IconLibrary:
    buf = io.BytesIO()
    Image.new("RGBA", (4, 4), (0, 0, 0, 255)).save(buf, format="PNG")
    return IconLibrary({"shapes:logo": buf.getvalue()})


def _ingestor(source, ui, **kwargs):
    parser = PlacementParser(500, 500, 100)
    return Ingestor(source, ui, ShutdownFlag(), parser, ModerationFilter(["bad"]), **kwargs)


def _render_loop(renderer, ui, jobs, **kwargs):
    return RenderLoop(Canvas(64, 64), renderer, ui, jobs, ShutdownFlag(), **kwargs)


# ----------------------------------------------------------------------
# Channels
# ----------------------------------------------------------------------


def test_bounded_channel_refuses_when_full():
    ch: Channel = Channel("print", maxsize=1)
    assert ch.send(1) is True
    assert ch.send(2) is False
    assert ch.receive() == 1
    assert ch.receive() is None


def test_closed_channel_refuses_and_drains():
    ch: Channel = Channel("ui")
    ch.send("a")
    ch.close()
    assert ch.send("b") is False
    assert ch.receive() == "a"
    with pytest.raises(ChannelClosed):
        ch.receive(timeout=0.01)


def test_shutdown_flag_keeps_first_reason():
    flag = ShutdownFlag()
    flag.set("first")
    flag.set("second")
    assert flag.is_set()
    assert flag.reason == "first"
    assert flag.wait(0) is True


# ----------------------------------------------------------------------
# Ingestion
# ----------------------------------------------------------------------


def test_ingestion_turns_text_into_draw():
    ingestor = _ingestor(FakeSource(), Channel("ui"))
    command = ingestor.handle(ChatEvent("alice", "#chan", "logo 10,10,2"))
    assert command == Draw(placement=Placement("logo", 10, 10, 2), sender="alice")


def test_quit_only_from_operators():
    ingestor = _ingestor(FakeSource(), Channel("ui"), operators=["Mod"])
    assert ingestor.handle(ChatEvent("viewer", "#chan", "!quit")) is None
    assert isinstance(ingestor.handle(ChatEvent("mod", "#chan", "!QUIT")), Quit)


def test_moderation_reject_is_answered_not_drawn():
    source = FakeSource()
    ingestor = _ingestor(source, Channel("ui"))
    assert ingestor.handle(ChatEvent("troll", "#chan", "b4d 1,1")) is None
    assert len(source.replies) == 1
    assert source.replies[0][0] == "#chan"


def test_unparseable_text_is_dropped():
    source = FakeSource()
    ingestor = _ingestor(source, Channel("ui"))
    assert ingestor.handle(ChatEvent("alice", "#chan", "hello there")) is None
    assert source.replies == []

    ingestor.reply_on_failure = True
    ingestor.handle(ChatEvent("alice", "#chan", "hello there"))
    assert len(source.replies) == 1


def test_ingestion_run_forwards_quit_and_closes_source():
    source = FakeSource([[ChatEvent("alice", "#c", "cat 1,2")], [ChatEvent("mod", "#c", "!quit")]])
    ui: Channel = Channel("ui")
    ingestor = _ingestor(source, ui, operators=["mod"])
    ingestor.run()
    assert isinstance(ui.receive(), Draw)
    assert isinstance(ui.receive(), Quit)
    assert source.closed


def test_ingestion_failure_sets_shutdown_and_quits():
    class BrokenSource(FakeSource):
        def poll(self):
            raise RuntimeError("boom")

    ui: Channel = Channel("ui")
    notifier = FakeNotifier()
    ingestor = _ingestor(BrokenSource(), ui, notifier=notifier)
    ingestor.run()
    assert ingestor.shutdown.is_set()
    assert isinstance(ui.receive(), Quit)
    assert isinstance(ingestor.failure, RuntimeError)
    assert len(notifier.sent) == 1
    assert notifier.sent[0][1] == "high"
    assert "ingestion" in notifier.sent[0][0]


# ----------------------------------------------------------------------
# Timer
# ----------------------------------------------------------------------


def test_format_countdown():
    assert format_countdown(65, "printing starts in: ") == "printing starts in: 1:05"
    assert format_countdown(300) == "5:00"
    assert format_countdown(0) == "0:00"


def test_timer_emits_clear_at_zero_and_resets(tmp_path):
    ui: Channel = Channel("ui")
    status = tmp_path / "timer.txt"
    timer = CountdownTimer(ui, ShutdownFlag(), 3, status_file=str(status), prefix="p: ")
    timer.write_status()
    assert status.read_text() == "p: 0:03"
    assert timer.advance() is False
    assert timer.advance() is False
    assert timer.advance() is True
    assert isinstance(ui.receive(), Clear)
    assert ui.receive() is None
    assert timer.remaining == 3


def test_timer_thread_ticks():
    ui: Channel = Channel("ui")
    shutdown = ShutdownFlag()
    timer = CountdownTimer(ui, shutdown, 1, tick=0.01)
    t = timer.start_thread()
    assert isinstance(ui.receive(timeout=2.0), Clear)
    shutdown.set("test")
    t.join(2.0)
    assert not t.is_alive()


def test_timer_failure_notifies_and_quits(monkeypatch):
    ui: Channel = Channel("ui")
    notifier = FakeNotifier()
    timer = CountdownTimer(ui, ShutdownFlag(), 1, tick=0.01, notifier=notifier)

    def broken():
        raise OSError("disk gone")

    monkeypatch.setattr(timer, "advance", broken)
    timer.run()
    assert timer.shutdown.is_set()
    assert isinstance(timer.failure, OSError)
    assert isinstance(ui.receive(), Quit)
    assert notifier.sent and notifier.sent[0][1] == "high"


# ----------------------------------------------------------------------
# Render loop
# ----------------------------------------------------------------------


def test_draw_clear_draw_ordering():
    ui: Channel = Channel("ui")
    jobs: Channel = Channel("print", maxsize=8)
    loop = _render_loop(FakeRenderer(), ui, jobs)
    ui.send(Draw(Placement("a", 0, 0)))
    ui.send(Clear())
    ui.send(Draw(Placement("b", 20, 20)))
    ui.close()
    stats = loop.run()

    job = jobs.receive()
    assert jobs.receive() is None
    assert count_dark(job.rows) == 16
    assert job.rows[0][0] == 0
    assert job.rows[20][20] == 255
    assert stats.printed == 1
    # The second draw stays on the canvas for the next cycle.
    assert not loop.canvas.is_blank()
    assert loop.canvas.image.getpixel((20, 20)) == 0
    assert loop.canvas.image.getpixel((0, 0)) == 255


def test_end_to_end_icon_label():
    source = FakeSource()
    ui: Channel = Channel("ui")
    jobs: Channel = Channel("print", maxsize=8)
    ingestor = _ingestor(source, ui)
    loop = _render_loop(Renderer(_icon_library()), ui, jobs)

    command = ingestor.handle(ChatEvent("alice", "#chan", "logo 10,10,2"))
    assert command.placement == Placement("logo", 10, 10, 2)
    ui.send(command)
    ui.send(Clear())
    ui.close()
    loop.run()

    job = jobs.receive()
    assert job is not None
    assert (job.width, job.height) == (64, 64)
    assert count_dark(job.rows) == 64
    assert job.rows[10][10] == 0 and job.rows[17][17] == 0
    assert job.rows[18][18] == 255
    assert jobs.receive() is None


def test_blank_canvas_produces_no_job():
    ui: Channel = Channel("ui")
    jobs: Channel = Channel("print", maxsize=8)
    loop = _render_loop(FakeRenderer(), ui, jobs)
    ui.send(Clear())
    ui.close()
    stats = loop.run()
    assert jobs.receive() is None
    assert stats.skipped_blank == 1


def test_quit_ends_loop_and_sets_shutdown():
    ui: Channel = Channel("ui")
    loop = _render_loop(FakeRenderer(), ui, Channel("print"))
    ui.send(Quit("done"))
    ui.send(Draw(Placement("late", 0, 0)))
    loop.run()
    assert loop.shutdown.is_set()
    assert loop.stats.drawn == 0


def test_closed_print_channel_stops_render_loop():
    ui: Channel = Channel("ui")
    jobs: Channel = Channel("print")
    jobs.close()
    loop = _render_loop(FakeRenderer(), ui, jobs)
    ui.send(Draw(Placement("a", 0, 0)))
    ui.send(Clear())
    ui.send(Draw(Placement("b", 5, 5)))
    loop.run()
    assert loop.shutdown.is_set()
    assert loop.stats.drawn == 1


def test_canvas_is_archived(tmp_path):
    ui: Channel = Channel("ui")
    jobs: Channel = Channel("print")
    loop = _render_loop(FakeRenderer(), ui, jobs, save_path=str(tmp_path / "saves"))
    ui.send(Draw(Placement("a", 0, 0)))
    ui.send(Clear())
    ui.close()
    stats = loop.run()
    assert len(stats.archived) == 1
    with Image.open(stats.archived[0]) as img:
        assert img.size == (64, 64)
    assert loop.canvas.is_blank()


def test_render_loop_runs_alongside_producer_thread():
    ui: Channel = Channel("ui")
    jobs: Channel = Channel("print", maxsize=8)
    loop = _render_loop(FakeRenderer(), ui, jobs)

    def produce():
        for i in range(5):
            ui.send(Draw(Placement(str(i), i * 8, 0)))
        ui.send(Clear())
        ui.close()

    t = threading.Thread(target=produce)
    t.start()
    loop.run()
    t.join(2.0)
    job = jobs.receive()
    assert count_dark(job.rows) == 5 * 16
