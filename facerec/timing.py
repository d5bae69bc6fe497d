"""
Timing - Đo thời gian theo stack lồng nhau (Training → PCA → ...).

Usage:
    timing_push("Training")
    ...
    timing_pop()
    timing_print()
"""

import time
from contextlib import contextmanager

_stack = []
_records = []


def timing_push(name):
    """Start timing a named section (nested under the current one)."""
    record = {"name": name, "depth": len(_stack), "duration": None}
    _records.append(record)
    _stack.append((record, time.time()))


def timing_pop():
    """
    Stop the innermost section.

    Returns:
        float: elapsed seconds
    """
    if not _stack:
        raise RuntimeError("timing_pop() without a matching timing_push()")
    record, start = _stack.pop()
    record["duration"] = time.time() - start
    return record["duration"]


def timing_records():
    return [dict(r) for r in _records]


def timing_clear():
    _stack.clear()
    _records.clear()


def timing_print():
    print("\n  Timing:", flush=True)
    for r in _records:
        duration = r["duration"]
        text = f"{duration:.3f}s" if duration is not None else "(running)"
        print(f"  {'  ' * r['depth']}{r['name']:<20} {text}", flush=True)


@contextmanager
def timed(name):
    """with timed("PCA"): ...  (pops even when the body raises)"""
    timing_push(name)
    try:
        yield
    finally:
        timing_pop()
