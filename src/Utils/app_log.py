"""
app_log.py
Global app log — forwards messages to whatever front end registered a sink.

A front end calls set_app_log(log_fn, after_fn) once at startup.
Utils/Profiles code calls app_log(msg) so messages reach that sink; every
message also goes to the stdlib "junimo" logger so headless runs and tests
still see it.

Thread safety: when after_fn is given and app_log is called from another
thread, messages are queued and drained on the registering thread via a
periodic after() callback.  Without after_fn messages are delivered inline.
"""

from __future__ import annotations

import logging
import queue
import threading

log = logging.getLogger("junimo")

_log_fn: callable | None = None
_after_fn: callable | None = None
_main_thread_id: int | None = None
_log_queue: queue.Queue[str] = queue.Queue()


def _drain_log_queue() -> None:
    """Run on main thread: drain queued messages and log them. Reschedule to run again."""
    if _log_fn is None:
        return
    try:
        while True:
            msg = _log_queue.get_nowait()
            try:
                _log_fn(msg)
            except Exception:
                pass
    except queue.Empty:
        pass
    if _after_fn is not None:
        _after_fn(50, _drain_log_queue)


def set_app_log(log_fn: callable[[str], None] | None, after_fn: callable | None = None) -> None:
    """Register the sink and, optionally, a main-thread runner (e.g. app.after)."""
    global _log_fn, _after_fn, _main_thread_id
    _log_fn = log_fn
    _after_fn = after_fn
    _main_thread_id = threading.current_thread().ident
    if after_fn is not None and log_fn is not None:
        after_fn(0, _drain_log_queue)


def app_log(message: str) -> None:
    """Write a message to the registered sink (thread-safe) and the junimo logger."""
    log.info(message)
    if _log_fn is None:
        return
    try:
        if _after_fn is None or threading.current_thread().ident == _main_thread_id:
            _log_fn(message)
        else:
            _log_queue.put_nowait(message)
    except Exception:
        pass
