"""EWMA cooldown estimator with cross-session persistence."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from src.core.models import CooldownEstimate, MonsterRecord
    from src.core.patterns import PatternRepository

logger = logging.getLogger(__name__)

_CONFIDENCE_STEP = 0.02
_CONFIDENCE_CAP = 0.99


def ewma_update(estimate: CooldownEstimate, observed: float) -> CooldownEstimate:
    """Fold one observed interval into *estimate* in place.

    First sample seeds ``mean=observed, variance=0``; afterwards
    ``mean' = a*obs + (1-a)*mean`` and
    ``var' = (1-a)*var + a*(obs-mean)**2`` using the pre-update mean.
    """
    if estimate.mean is None:
        estimate.mean = float(observed)
        estimate.variance = 0.0
    else:
        a = estimate.alpha
        err = observed - estimate.mean
        estimate.mean = a * observed + (1 - a) * estimate.mean
        estimate.variance = (1 - a) * estimate.variance + a * err * err
    estimate.samples += 1
    return estimate


class CooldownEstimator:
    """Updates per-creature estimates and writes them through to the pattern store."""

    __slots__ = ("_patterns", "_clock", "updates")

    def __init__(self, patterns: PatternRepository, clock: Callable[[], int]) -> None:
        self._patterns = patterns
        self._clock = clock
        self.updates = 0

    def observe(self, record: MonsterRecord, interval_ms: float) -> bool:
        """Feed an observed inter-attack interval. Non-positive intervals are ignored."""
        if interval_ms is None or interval_ms <= 0:
            return False
        est = ewma_update(record.cooldown, interval_ms)
        self.updates += 1

        now = self._clock()
        previous = self._patterns.get(record.name)
        prev_conf = previous.confidence if previous is not None else 0.5
        self._patterns.persist(
            record.name,
            {
                "wave_cooldown": est.mean,
                "wave_variance": est.variance,
                "last_seen": now,
                "confidence": min(prev_conf + _CONFIDENCE_STEP, _CONFIDENCE_CAP),
            },
            sample={"time": now, "interval": interval_ms, "cooldown": round(est.mean, 1)},
        )
        logger.debug(
            "Cooldown %s #%d: obs=%.0f mean=%.0f var=%.0f",
            record.name, record.creature_id, interval_ms, est.mean, est.variance,
        )
        return True
