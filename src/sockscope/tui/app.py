"""TUI application: hosts the session reducer in an interactive terminal."""

from __future__ import annotations

import logging
import os
import queue
import signal
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from rich.console import Console
from rich.live import Live
from rich.text import Text

from sockscope.actions.terminate import TerminateAction
from sockscope.collector.base import ConnectionSource, SourceError
from sockscope.collector.models import Connection
from sockscope.enrich.enricher import Enricher
from sockscope.render.theme import Theme, get_theme
from sockscope.tui.input import KeyboardInput
from sockscope.tui.messages import (
    ClearStatus,
    ClearStatusTask,
    DataLoaded,
    DetailEnriched,
    EnrichTask,
    FetchFailed,
    FetchTask,
    KeyPress,
    KillResult,
    KillTask,
    Message,
    Resize,
    Task,
    Tick,
    TickTask,
)
from sockscope.tui.state import DetailInfo, SessionState
from sockscope.tui.update import update
from sockscope.tui.view import TuiDisplay

logger = logging.getLogger(__name__)


class TuiApp:
    """Interactive live view.

    Threading model:
    - Main thread: keyboard input, the reducer and Rich Live rendering
    - Worker pool: fetches, kills and detail enrichment
    - Timers: refresh ticks and status expiry

    Every producer reaches the session only through ``post``; the main
    thread drains the queue and is the only caller of ``update``.
    """

    def __init__(
        self,
        state: SessionState,
        source: ConnectionSource,
        enricher: Enricher | None = None,
        terminator: TerminateAction | None = None,
        theme: Theme | None = None,
        console: Console | None = None,
        max_workers: int = 4,
    ) -> None:
        self._state = state
        self._source = source
        self._enricher = enricher or Enricher(numeric=True)
        self._terminator = terminator or TerminateAction()
        self._display = TuiDisplay(theme or get_theme())
        self._console = console or Console(stderr=True)
        self._queue: queue.Queue[Message] = queue.Queue()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="sockscope-task"
        )
        self._timers: set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._closed = False
        self._interrupted = False

    @property
    def state(self) -> SessionState:
        return self._state

    # --- message plumbing ---

    def post(self, msg: Message) -> None:
        """Queue a message; silently dropped once the session has ended."""
        if self._closed:
            return
        self._queue.put(msg)

    def dispatch(self, msg: Message) -> None:
        """Run one message through the reducer and start the tasks it returns."""
        self._state, tasks = update(self._state, msg)
        if not self._state.running:
            return
        for task in tasks:
            self.schedule(task)

    def drain(self) -> bool:
        """Dispatch every queued message. Returns True if any was handled."""
        handled = False
        while self._state.running:
            try:
                msg = self._queue.get_nowait()
            except queue.Empty:
                break
            self.dispatch(msg)
            handled = True
        return handled

    def schedule(self, task: Task) -> None:
        if isinstance(task, TickTask):
            self._after(task.delay, Tick())
        elif isinstance(task, ClearStatusTask):
            self._after(task.delay, ClearStatus())
        else:
            self._executor.submit(self._run_task, task)

    def _after(self, delay: float, msg: Message) -> None:
        def fire() -> None:
            with self._lock:
                self._timers.discard(timer)
            self.post(msg)

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._lock:
            if self._closed:
                return
            self._timers.add(timer)
        timer.start()

    def _run_task(self, task: Task) -> None:
        try:
            result = self.execute(task)
        except Exception:
            logger.exception("Task %r failed", task)
            return
        if result is not None:
            self.post(result)

    def execute(self, task: Task) -> Message | None:
        """Perform the side effect of ``task`` and build the result message."""
        if isinstance(task, FetchTask):
            try:
                connections = self._source.fetch()
            except SourceError as e:
                logger.debug("Fetch failed: %s", e)
                return FetchFailed(str(e))
            return DataLoaded(tuple(connections), at=time.time())

        if isinstance(task, KillTask):
            success, error = self._terminator.execute(task.pid, task.process)
            return KillResult(task.pid, task.process, success, error)

        if isinstance(task, EnrichTask):
            return DetailEnriched(task.connection, self._detail_info(task.connection))

        return None

    def _detail_info(self, conn: Connection) -> DetailInfo:
        addr = conn.raddr if conn.has_remote else conn.laddr
        hostname = self._enricher.addr(addr)
        return DetailInfo(
            hostname="" if hostname == addr else hostname,
            geo=self._enricher.geo(conn),
        )

    # --- lifecycle ---

    def close(self) -> None:
        """Stop timers and workers; late results are discarded."""
        with self._lock:
            self._closed = True
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _terminal_size(self) -> tuple[int, int]:
        try:
            size = os.get_terminal_size(sys.stderr.fileno())
        except OSError:
            return self._state.width, self._state.height
        return size.columns, size.lines

    def run(self) -> None:
        """Run the TUI main loop. Blocks until the user quits."""
        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _signal_handler(signum: int, frame: object) -> None:
            self._interrupted = True

        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)

        width, height = self._terminal_size()
        self.dispatch(Resize(width, height))
        self.dispatch(Tick())

        try:
            with KeyboardInput() as kb:
                with Live(
                    console=self._console,
                    screen=True,
                    auto_refresh=False,
                ) as live:
                    last_frame = ""
                    last_paint = 0.0
                    while self._state.running and not self._interrupted:
                        key = kb.read(timeout=0.05)
                        if key is not None:
                            self.post(KeyPress(key))

                        size = self._terminal_size()
                        if size != (self._state.width, self._state.height):
                            self.post(Resize(*size))

                        self.drain()
                        if not self._state.running:
                            break

                        # Repaint on change, and at least once a second for
                        # the "refreshed N ago" counter.
                        now = time.time()
                        frame = self._display.render(self._state, now)
                        if frame != last_frame or now - last_paint >= 1.0:
                            live.update(Text.from_ansi(frame), refresh=True)
                            last_frame = frame
                            last_paint = now
        finally:
            self.close()
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
