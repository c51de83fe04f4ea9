"""Process control helpers for external commands and shutdown requests."""

import signal
import subprocess
import threading
from typing import Any, Dict, Iterable, Optional, Set

from ..errors import RunInterrupted
from ..infra.logger import log_warning


_active_processes: Set[subprocess.Popen] = set()
_active_processes_lock = threading.Lock()
_shutdown_event = threading.Event()

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def start_tracked_process(command, **kwargs: Any) -> subprocess.Popen:
    """Start a subprocess and track it while it runs."""
    process = subprocess.Popen(command, **kwargs)
    with _active_processes_lock:
        _active_processes.add(process)
    return process


def untrack_process(process: subprocess.Popen) -> None:
    """Remove process from tracked set."""
    with _active_processes_lock:
        _active_processes.discard(process)


def run_tracked(command, **kwargs: Any) -> subprocess.CompletedProcess:
    """Run ``command`` to completion as a tracked process.

    In-flight commands are never cut short by a shutdown request; the caller
    decides what to do once they return.
    """
    process = start_tracked_process(command, **kwargs)
    try:
        stdout, stderr = process.communicate()
    finally:
        untrack_process(process)
    return subprocess.CompletedProcess(command, process.returncode, stdout, stderr)


def request_shutdown() -> None:
    """Signal shutdown without touching running subprocesses."""
    _shutdown_event.set()


def clear_shutdown_request() -> None:
    """Clear shutdown signal before a new run."""
    _shutdown_event.clear()


def is_shutdown_requested() -> bool:
    """Whether an interruption was requested."""
    return _shutdown_event.is_set()


def raise_if_shutdown_requested(context: str = "") -> None:
    if is_shutdown_requested():
        log_warning(f"interrupt received, stopping{' ' + context if context else ''}")
        raise RunInterrupted(f"interrupted{': ' + context if context else ''}")


def _handle_signal(signum, _frame) -> None:
    # Flag only, no I/O inside the handler.
    _shutdown_event.set()


def install_signal_handlers(signals: Iterable[int] = INTERRUPT_SIGNALS) -> Dict[int, Any]:
    """Route interruption signals to the shutdown flag.

    Returns the previous handlers so they can be restored.
    """
    previous: Dict[int, Any] = {}
    for signum in signals:
        previous[signum] = signal.signal(signum, _handle_signal)
    return previous


def restore_signal_handlers(previous: Optional[Dict[int, Any]]) -> None:
    for signum, handler in (previous or {}).items():
        if handler is not None:
            signal.signal(signum, handler)
