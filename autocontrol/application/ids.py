"""Locally generated ids for records created while the backend is unreachable."""

import itertools
import secrets
import threading
import time

_counter = itertools.count()
_counter_lock = threading.Lock()


def new_local_id() -> str:
    """
    '<ms timestamp>-<counter><random>'. The process-wide counter keeps ids created in the
    same millisecond distinct; the random suffix keeps separate processes apart.
    """
    with _counter_lock:
        sequence = next(_counter)
    return f"{int(time.time() * 1000)}-{sequence:x}{secrets.token_hex(4)}"
