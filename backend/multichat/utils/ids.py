"""Identifier minting for chats, messages and media items.

Chat ids follow the 12-byte document-store layout: 4 bytes of epoch seconds,
5 random bytes fixed per process, 3 bytes of a wrapping counter. They sort by
creation second, which is all the sidebar ordering needs.
"""

from __future__ import annotations

import itertools
import os
import random
import threading
import time

from multichat.utils.time import now_ms

_PROCESS_RANDOM = os.urandom(5)
_counter = itertools.count(random.randint(0, 0xFFFFFF))
_counter_lock = threading.Lock()

_last_message_id = 0
_message_lock = threading.Lock()


def new_object_id(timestamp: float | None = None) -> str:
    """Return a 24-char hex, time-ordered chat id."""
    seconds = int(time.time() if timestamp is None else timestamp)
    with _counter_lock:
        count = next(_counter) & 0xFFFFFF
    raw = (
        seconds.to_bytes(4, "big")
        + _PROCESS_RANDOM
        + count.to_bytes(3, "big")
    )
    return raw.hex()


def object_id_timestamp(object_id: str) -> int:
    """Epoch seconds encoded in an id minted by new_object_id."""
    if len(object_id) != 24:
        raise ValueError(f"Not an object id: {object_id!r}")
    return int(object_id[:8], 16)


def new_message_id(span: int = 1) -> int:
    """Millisecond timestamp id, bumped by one when the clock has not moved.

    ``span`` reserves that many consecutive ids starting at the returned one.
    """
    global _last_message_id
    with _message_lock:
        candidate = now_ms()
        if candidate <= _last_message_id:
            candidate = _last_message_id + 1
        _last_message_id = candidate + span - 1
        return candidate


def new_media_id() -> float:
    """Millisecond timestamp plus a random fraction, unique enough within one chat."""
    return now_ms() + random.random()
