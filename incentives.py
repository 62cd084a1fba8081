"""
Incentive optimization: smallest referral bonus that hits a hiring target in time.
"""
import logging
import math
from functools import lru_cache
from typing import Callable, Optional

from simulation import DEFAULT_CONFIG, SimulationConfig, SimulationError, days_to_target

logger = logging.getLogger(__name__)

BONUS_INCREMENT = 10  # bonus offered in $10 increments
MAX_BONUS = 10_000_000  # guardrail for the doubling phase
SATURATION_EPS = 1e-3  # doubling the bonus moved p by less than this: give up
BRACKET_TOLERANCE = 5  # finer than half an increment is wasted work


def min_bonus_for_target(
    days: int,
    target_hires: float,
    adoption_prob: Callable[[float], float],
    *,
    eps: float = SATURATION_EPS,
    initial_high: float = BONUS_INCREMENT,  # optional initial high bound, perhaps of prior runs.
    max_bonus: float = MAX_BONUS,
    tolerance: float = BRACKET_TOLERANCE,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> Optional[int]:
    """
    Find minimum bonus ($10 increments) to reach target_hires within days.

    Args:
        days: number of days to simulate
        target_hires: cumulative hires to reach
        adoption_prob: black-box function mapping bonus -> probability
            (deterministic, monotonic non-decreasing, possibly expensive)

    Returns:
        Smallest bonus achieving target, or None if impossible. This is the
        smallest qualifying multiple of $10, which can be one increment below
        the upper bracket rounded up.
    """
    if days <= 0:
        raise SimulationError(f"days must be > 0, got {days}")
    if target_hires < 0:
        raise SimulationError(f"target_hires must be >= 0, got {target_hires}")
    if initial_high <= 0:
        raise SimulationError(f"initial_high must be > 0, got {initial_high}")

    # each distinct bonus hits the oracle once per call
    probability = lru_cache(maxsize=None)(adoption_prob)

    @lru_cache(maxsize=None)
    def reaches_target(bonus: float) -> bool:
        p = probability(bonus)
        if not math.isfinite(p) or p < 0:
            return False
        return days_to_target(min(1.0, p), target_hires, days, config) != -1

    if reaches_target(0):
        return 0

    # Phase 1: find upper bound, exponentially increasing.
    low, high = 0.0, float(initial_high)
    last_p = probability(high)
    while not reaches_target(high):
        low = high
        high *= 2
        if high > max_bonus:
            logger.info("no bonus up to %s reaches %s hires in %d days", max_bonus, target_hires, days)
            return None
        p = probability(high)
        if abs(p - last_p) < eps:
            logger.info("adoption saturated at p=%.4f, %s hires in %d days unreachable", p, target_hires, days)
            return None
        last_p = p
    logger.debug("bracket found: (%s, %s]", low, high)

    # Phase 2: binary search, low never reaches the target and high always does.
    while high - low > tolerance:
        mid = (low + high) / 2
        if reaches_target(mid):
            high = mid
        else:
            low = mid

    # at most one increment sits inside (low, high), try it before rounding high up
    rounded = (math.floor(low / BONUS_INCREMENT) + 1) * BONUS_INCREMENT
    if rounded < high and not reaches_target(rounded):
        rounded += BONUS_INCREMENT
    if not reaches_target(rounded):
        logger.info("rounded bonus %d misses the target", rounded)
        return None
    return rounded
