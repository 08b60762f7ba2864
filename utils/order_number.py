import random
import threading
import time
from datetime import datetime
from typing import Callable, Optional

SUFFIX_MIN = 1000
SUFFIX_MAX = 9999
SUFFIXES_PER_SECOND = SUFFIX_MAX - SUFFIX_MIN + 1


class OrderNumberGenerator:
    """
    Builds ``ORD-YYMMDD-HHMMSS-NNNN`` numbers from the current second and a
    random 4-digit suffix.

    The store is not consulted, so two processes can still collide. Within one
    process a number is never handed out twice: suffixes already used in the
    current second are redrawn, and once all of them are spent the generator
    waits for the next second.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None,
                 rng: Optional[random.Random] = None):
        self._clock = clock or datetime.now
        self._rng = rng or random.SystemRandom()
        self._lock = threading.Lock()
        self._second: Optional[datetime] = None
        self._issued: set[int] = set()

    def __call__(self) -> str:
        while True:
            with self._lock:
                now = self._current_second()
                if len(self._issued) < SUFFIXES_PER_SECOND:
                    suffix = self._rng.randint(SUFFIX_MIN, SUFFIX_MAX)
                    while suffix in self._issued:
                        suffix = self._rng.randint(SUFFIX_MIN, SUFFIX_MAX)
                    self._issued.add(suffix)
                    return f"ORD-{now:%y%m%d}-{now:%H%M%S}-{suffix}"

                # every suffix of this second is spent
                wait = 1 - self._clock().microsecond / 1_000_000

            time.sleep(wait)

    def _current_second(self) -> datetime:
        now = self._clock().replace(microsecond=0)
        if now != self._second:
            self._second = now
            self._issued = set()
        return now


generate_order_number = OrderNumberGenerator()
