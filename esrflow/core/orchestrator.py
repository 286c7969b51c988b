"""
UpscaleProcess: thin orchestration around the compiled upscaler binaries.

Behavior:
- Validate the input path, create the output location, compile the command
- Launch the executable with stderr captured; stdout is left alone since the
  tool writes its images straight to disk
- A reader thread and (for directory input) a watchdog observer post events to
  one queue; the thread running the process drains it and calls on_progress,
  so progress reports never interleave
- Cancellation kills the whole process tree immediately; output files may be
  left incomplete
"""

from __future__ import annotations

import logging
import os
import queue
import subprocess
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import psutil

from .errors import InputNotFoundError, UpscalerLaunchError
from .invocation import UpscaleInputArgs
from .models import CANCELLED_EXIT_CODE, CANCELLED_MESSAGE, UpscaleResult
from .progress import DiagnosticBuffer, FileCountProgress, PercentProgress, count_input_files
from .watcher import OutputDirectoryWatch

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

POLL_INTERVAL = 0.05
READER_JOIN_TIMEOUT = 5.0
DEFAULT_MAX_WORKERS = 4
MAX_WORKERS_ENV = "ESRFLOW_MAX_WORKERS"


@dataclass
class _RunState:
    """Per-run counters; discarded when the run ends."""
    is_dir: bool
    output_dir: Path
    total_files: int
    buffer: DiagnosticBuffer = field(default_factory=DiagnosticBuffer)
    percent: PercentProgress = field(default_factory=PercentProgress)
    files: Optional[FileCountProgress] = None
    cancelled: bool = False


class _StderrReader(threading.Thread):
    def __init__(self, stream, events: "queue.Queue[Dict[str, Any]]"):
        super().__init__(name="esrflow-stderr", daemon=True)
        self.stream = stream
        self.events = events

    def run(self) -> None:
        try:
            for raw in self.stream:
                line = raw.rstrip()
                if line:
                    self.events.put({"type": "line", "line": line})
        except (OSError, ValueError) as ex:
            # stream closed underneath us during teardown
            logger.debug("stderr reader stopped: %s", ex)


def _kill_tree(proc: subprocess.Popen) -> None:
    """Kill the process and all of its descendants without a grace period."""
    try:
        children = psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []
    for child in children:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    proc.wait()


class UpscaleProcess:
    """Run the upscaler once for one UpscaleInputArgs.

    For a single image, progress is accurate for that image and may be reported
    many times per second. For a directory, progress is only reported when an
    output file appears, so it is accurate to the nearest 1/n.

    Raises InputNotFoundError when the input is missing and UpscalerLaunchError
    when the process cannot be started. Everything else, cancellation included,
    is reported through the returned UpscaleResult.
    """

    def __init__(
        self,
        args: UpscaleInputArgs,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        if args is None:
            raise TypeError("args is required")
        self.args = args
        self.on_progress = on_progress
        self.cancel_event = cancel_event or threading.Event()
        self.poll_interval = poll_interval
        self._events: "queue.Queue[Dict[str, Any]]" = queue.Queue()

    def run(self) -> UpscaleResult:
        args = self.args
        if self.cancel_event.is_set():
            logger.info("Upscale cancelled before start: %s", args.input_path)
            return UpscaleResult.cancelled_before_start()

        state = self._validate()
        state.output_dir.mkdir(parents=True, exist_ok=True)
        cmd = args.build_command()
        logger.debug("Upscaler command: %s", cmd)

        watch: Optional[OutputDirectoryWatch] = None
        proc: Optional[subprocess.Popen] = None
        reader: Optional[_StderrReader] = None
        try:
            if self.on_progress is not None and state.is_dir and state.total_files > 0:
                watch = OutputDirectoryWatch(state.output_dir, self._events).start()
                state.files = FileCountProgress(state.total_files, existing=watch.baseline)

            proc = self._launch(cmd)
            started = time.time()
            logger.info("Started upscaler pid=%s for %s", proc.pid, args.input_path)
            reader = _StderrReader(proc.stderr, self._events)
            reader.start()

            self._wait(proc, state)

            reader.join(timeout=READER_JOIN_TIMEOUT)
            if watch is not None:
                watch.stop()
            self._drain(state)
            if watch is not None and not state.cancelled:
                # events still in flight when the process exited
                for name in watch.snapshot():
                    self._on_created(str(state.output_dir / name), state)
            logger.info("Upscaler pid=%s exited rc=%s after %.1fs", proc.pid, proc.returncode, time.time() - started)
            if not state.is_dir:
                logger.debug("Last reported progress for %s: %s", args.input_path, state.percent.last)
            return self._result(proc.returncode, state)
        finally:
            if watch is not None:
                watch.stop()
            if proc is not None:
                if proc.poll() is None:
                    _kill_tree(proc)
                # a reader still blocked in read() holds the buffer lock
                if proc.stderr is not None and not (reader is not None and reader.is_alive()):
                    proc.stderr.close()

    def _validate(self) -> _RunState:
        input_path = Path(self.args.input_path)
        output_path = Path(self.args.output_path)
        if input_path.is_dir():
            return _RunState(is_dir=True, output_dir=output_path, total_files=count_input_files(input_path))
        if input_path.is_file():
            return _RunState(is_dir=False, output_dir=output_path.parent, total_files=1)
        raise InputNotFoundError(input_path)

    def _launch(self, cmd: Union[List[str], str]) -> subprocess.Popen:
        try:
            return subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as ex:
            raise UpscalerLaunchError(f"Unable to start upscaler process: {ex}") from ex

    def _wait(self, proc: subprocess.Popen, state: _RunState) -> None:
        while True:
            self._drain(state)
            if self.cancel_event.is_set():
                if proc.poll() is None:
                    logger.warning("Cancelling upscaler pid=%s; output may be incomplete", proc.pid)
                    _kill_tree(proc)
                    state.cancelled = True
                return
            if proc.poll() is not None:
                return
            self.cancel_event.wait(self.poll_interval)

    def _drain(self, state: _RunState) -> None:
        while True:
            try:
                ev = self._events.get_nowait()
            except queue.Empty:
                return
            kind = ev.get("type")
            if kind == "line":
                self._on_line(ev["line"], state)
            elif kind == "created":
                self._on_created(ev["path"], state)

    def _on_line(self, line: str, state: _RunState) -> None:
        value = state.percent.feed(line)
        if value is None:
            state.buffer.append(line)
            return
        # per-image percentages reset for every file in a directory run
        if not state.is_dir:
            self._report(value, state)

    def _on_created(self, path: str, state: _RunState) -> None:
        if state.files is None:
            return
        value = state.files.feed(path)
        if value is not None:
            self._report(value, state)

    def _report(self, value: float, state: _RunState) -> None:
        if self.on_progress is None or state.cancelled or self.cancel_event.is_set():
            return
        self.on_progress(value)

    def _result(self, returncode: int, state: _RunState) -> UpscaleResult:
        tail = state.buffer.text()
        if state.cancelled:
            exit_code = returncode if returncode not in (None, 0) else CANCELLED_EXIT_CODE
            message = CANCELLED_MESSAGE + (f"\n{tail}" if tail else "")
            return UpscaleResult(exit_code=exit_code, error_message=message, cancelled=True)
        if returncode == 0:
            return UpscaleResult(exit_code=0)
        logger.warning("Upscaler failed rc=%s for %s", returncode, self.args.input_path)
        return UpscaleResult(
            exit_code=returncode,
            error_message=tail or f"upscaler exited with code {returncode}",
        )


def run_upscale(
    args: UpscaleInputArgs,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> UpscaleResult:
    """Run one upscale and block until it finishes or is cancelled."""
    return UpscaleProcess(args, on_progress=on_progress, cancel_event=cancel_event).run()


_pool: Optional[ThreadPoolExecutor] = None
_pool_lock = threading.Lock()


def _default_pool() -> ThreadPoolExecutor:
    """Shared pool for submit_upscale, created on first use.

    Holds DEFAULT_MAX_WORKERS threads unless ESRFLOW_MAX_WORKERS says otherwise;
    further submissions wait in the pool queue until a worker frees up.
    """
    global _pool
    with _pool_lock:
        if _pool is None:
            workers = int(os.environ.get(MAX_WORKERS_ENV) or DEFAULT_MAX_WORKERS)
            if workers < 1:
                raise ValueError(f"{MAX_WORKERS_ENV} must be at least 1, got {workers}")
            _pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="esrflow")
        return _pool


def submit_upscale(
    args: UpscaleInputArgs,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    executor: Optional[ThreadPoolExecutor] = None,
) -> "Future[UpscaleResult]":
    """Start an upscale in the background and return a Future for its result.

    on_progress is called from the worker thread, never concurrently with itself.
    Runs share one bounded pool (see _default_pool); pass ``executor`` to use
    your own, e.g. to run more upscales at once.
    Exceptions (missing input, launch failure) surface from ``Future.result()``.
    """
    pool = executor or _default_pool()
    return pool.submit(run_upscale, args, on_progress, cancel_event)
