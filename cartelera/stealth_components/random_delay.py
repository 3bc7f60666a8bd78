import asyncio
import random
from typing import Optional

from cartelera.config import settings


async def human_delay(
    min_s: Optional[float] = None,
    max_s: Optional[float] = None,
    multiplier: float = 1.0,
) -> float:
    """
    Sleeps for a random duration in ``[min_s, max_s]`` scaled by ``multiplier``.

    Bounds default to the global ``min_delay_ms``/``max_delay_ms`` settings.
    An inverted range collapses to its upper bound; a non-positive upper bound
    returns immediately. Returns the number of seconds slept.
    """
    if min_s is None:
        min_s = settings.scraper_globals.min_delay_ms / 1000.0
    if max_s is None:
        max_s = settings.scraper_globals.max_delay_ms / 1000.0

    actual_min = max(min_s * multiplier, 0.0)
    actual_max = max_s * multiplier

    if actual_max <= 0:
        return 0.0
    if actual_min > actual_max:
        actual_min = actual_max

    duration = random.uniform(actual_min, actual_max)
    await asyncio.sleep(duration)
    return duration
