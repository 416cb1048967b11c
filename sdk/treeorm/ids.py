"""
Record id generation.

Three modes are supported, selected per store:
- push: database-generated, lexicographically time-ordered keys
- uuid1: time-ordered random UUIDs
- uuid4: fully random UUIDs
"""

from __future__ import annotations

import random
import threading
import time
import uuid
from enum import Enum
from typing import List

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


class IdMode(Enum):
    """Supported id generation modes."""

    PUSH = "push"
    UUID1 = "uuid1"
    UUID4 = "uuid4"


class PushKeyGenerator:
    """Generates 20 character keys that sort in creation order.

    The first 8 characters encode the timestamp in milliseconds, the
    remaining 12 are random. Keys generated within the same millisecond
    increment the random part so they still sort in creation order.
    """

    def __init__(self) -> None:
        self._last_time = 0
        self._last_random: List[int] = [0] * 12
        self._lock = threading.Lock()
        self._rng = random.SystemRandom()

    def __call__(self) -> str:
        with self._lock:
            now = int(time.time() * 1000)
            duplicate = now == self._last_time
            self._last_time = now

            time_chars = []
            for _ in range(8):
                time_chars.append(PUSH_CHARS[now % 64])
                now //= 64
            key = "".join(reversed(time_chars))

            if not duplicate:
                self._last_random = [self._rng.randrange(64) for _ in range(12)]
            else:
                # Same millisecond, increment the random part by one
                i = 11
                while i >= 0 and self._last_random[i] == 63:
                    self._last_random[i] = 0
                    i -= 1
                if i >= 0:
                    self._last_random[i] += 1

            return key + "".join(PUSH_CHARS[n] for n in self._last_random)


generate_push_key = PushKeyGenerator()


def generate_uuid(mode: IdMode) -> str:
    """Generate a UUID string for the uuid modes."""
    if mode is IdMode.UUID1:
        return str(uuid.uuid1())
    if mode is IdMode.UUID4:
        return str(uuid.uuid4())
    raise ValueError(f"{mode} is not a uuid mode")
