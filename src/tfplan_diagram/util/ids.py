from __future__ import annotations

import random
import time
from typing import Callable, Optional

MAX_SEED = 2147483647


class IdSource:
    """
    Single source of randomness for a pipeline run: element seeds, version
    nonces, icon element/group ids, layout jitter and the `updated` stamp.

    Pass `seed` (and optionally `clock`) for reproducible scenes; leave both
    unset in production.
    """

    def __init__(self, seed: Optional[int] = None, *, clock: Optional[Callable[[], int]] = None) -> None:
        self._seed = seed
        self._rng = random.Random(seed)
        self._clock = clock

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def rand_int(self) -> int:
        return self._rng.randrange(MAX_SEED)

    def random(self) -> float:
        return self._rng.random()

    def token(self, prefix: str) -> str:
        return f"{prefix}-{self.rand_int()}"

    def now_ms(self) -> int:
        if self._clock is not None:
            return int(self._clock())
        if self._seed is not None:
            return 0
        return int(time.time() * 1000)
