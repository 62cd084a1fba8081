"""
Expected growth of a referrer cohort.

Rules:
- 100 initial referrers, each with capacity 10
- Each day, an active referrer succeeds with prob p (max 1/day)
- Success consumes 1 capacity; at 0, the referrer becomes inactive
- Every success hires a new referrer who joins with full capacity

All quantities are expectations (floats), not sampled counts.
"""
import logging
from dataclasses import dataclass
from itertools import islice
from typing import Iterator

logger = logging.getLogger(__name__)

INITIAL_REFERRERS = 100
MAX_CAPACITY = 10
DEFAULT_MAX_DAYS = 3650  # ten years
TOLERANCE = 1e-9  # slack for floating point accumulation when comparing to a target


class SimulationError(ValueError):
    pass


@dataclass(frozen=True)
class SimulationConfig:
    """Starting cohort and capacity model shared by every simulation call."""

    initial_referrers: float = INITIAL_REFERRERS
    capacity: int = MAX_CAPACITY
    tolerance: float = TOLERANCE

    def __post_init__(self):
        if self.capacity < 1:
            raise SimulationError("capacity must be >= 1")
        if self.initial_referrers < 0:
            raise SimulationError("initial_referrers must be >= 0")


DEFAULT_CONFIG = SimulationConfig()


def _validate_probability(p: float) -> None:
    # written this way round so NaN fails too
    if not 0.0 <= p <= 1.0:
        raise SimulationError(f"p must be in [0, 1], got {p}")


def _cumulative_successes(p: float, config: SimulationConfig) -> Iterator[float]:
    """Yield cumulative expected successes at the end of day 1, 2, ..."""
    top = config.capacity
    # buckets[c] = expected referrers with c attempts left, index 0 unused
    buckets = [0.0] * (top + 1)
    buckets[top] = float(config.initial_referrers)
    cumulative = 0.0

    while True:
        successes = p * sum(buckets[1:])
        new_buckets = [0.0] * (top + 1)
        for c in range(1, top):
            # failed: stay at c, succeeded one level up: drop to c
            new_buckets[c] = (1 - p) * buckets[c] + p * buckets[c + 1]
        # today's hires start at full capacity
        new_buckets[top] = (1 - p) * buckets[top] + successes
        buckets = new_buckets

        cumulative += successes
        yield cumulative


def simulate(p: float, days: int, config: SimulationConfig = DEFAULT_CONFIG) -> list[float]:
    """Cumulative expected successes at the end of each day, one value per day."""
    _validate_probability(p)
    if days < 0:
        raise SimulationError(f"days must be >= 0, got {days}")
    return list(islice(_cumulative_successes(p, config), days))


def days_to_target(
    p: float,
    target_total: float,
    max_days: int = DEFAULT_MAX_DAYS,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> int:
    """
    First day (1-based) on which cumulative successes reach target_total.

    Returns -1 if the target is not reached within max_days.
    """
    _validate_probability(p)
    if target_total < 0:
        raise SimulationError(f"target_total must be >= 0, got {target_total}")
    if max_days < 0:
        raise SimulationError(f"max_days must be >= 0, got {max_days}")

    trajectory = islice(_cumulative_successes(p, config), max_days)
    for day, cumulative in enumerate(trajectory, start=1):
        if cumulative + config.tolerance >= target_total:
            return day
    logger.debug("target %s not reached within %d days at p=%s", target_total, max_days, p)
    return -1


def expected_network_size(p: float, days: int, config: SimulationConfig = DEFAULT_CONFIG) -> float:
    """Initial cohort plus every expected hire after `days` days."""
    trajectory = simulate(p, days, config)
    return config.initial_referrers + (trajectory[-1] if trajectory else 0.0)


# sanity check :
# p=0, days=10: 100.0
# p=1, days=1: 200.0
# p=1, days=2: 400.0
