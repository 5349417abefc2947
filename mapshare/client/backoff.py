from typing import Iterator

from mapshare.core.presence_config import BACKOFF_BASE_SECONDS, BACKOFF_MAX_SECONDS


def backoff_delays(
    base: float = BACKOFF_BASE_SECONDS,
    maximum: float = BACKOFF_MAX_SECONDS,
) -> Iterator[float]:
    """base, 2*base, 4*base, ... capped at maximum. Never ends."""
    delay = base
    while True:
        yield min(delay, maximum)
        delay *= 2
