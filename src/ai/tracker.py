"""Behavior tracker — rolling per-creature history and derived counters.

One ``MonsterRecord`` exists per visible hostile. Records are created on
first sighting, updated on every host event or periodic pass, and folded
into per-type ``TypeStats`` when the creature dies or leaves.

Invalid, dead or positionless creatures are ignored: every public method
returns ``None`` instead of raising.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Callable

from src.ai.predictor import is_facing_position
from src.core.models import CooldownEstimate, MonsterRecord, Sample, TypeStats
from src.core.patterns import normalize_name

if TYPE_CHECKING:
    from src.config import CombatConfig
    from src.core.creature import Access, CreatureAdapter
    from src.core.models import Position

logger = logging.getLogger(__name__)

_TYPE_STATS_ALPHA = 0.15
_TELEMETRY_SMOOTHING = 0.85
_MIN_PREFERRED_DISTANCE_SAMPLES = 10


class BehaviorTracker:
    """Owns the MonsterRecord map and the per-type aggregate statistics."""

    __slots__ = (
        "_config", "_clock", "_player_position", "_records",
        "_type_stats", "ewma_alpha", "telemetry_interval_ms",
        "total_tracked", "telemetry_samples",
    )

    def __init__(
        self,
        config: CombatConfig,
        clock: Callable[[], int],
        player_position: Callable[[], Access[Position]],
    ) -> None:
        self._config = config
        self._clock = clock
        self._player_position = player_position
        self._records: dict[int, MonsterRecord] = {}
        self._type_stats: dict[str, TypeStats] = {}
        # Overridden by volume adaptation.
        self.ewma_alpha = config.ewma_alpha
        self.telemetry_interval_ms = config.telemetry_interval_ms
        self.total_tracked = 0
        self.telemetry_samples = 0

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, creature_id: int) -> MonsterRecord | None:
        return self._records.get(creature_id)

    def records(self) -> list[MonsterRecord]:
        return list(self._records.values())

    def type_stats(self, name: str) -> TypeStats | None:
        return self._type_stats.get(normalize_name(name))

    def all_type_stats(self) -> dict[str, TypeStats]:
        return dict(self._type_stats)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, creature_id: int) -> bool:
        return creature_id in self._records

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def track(self, creature: CreatureAdapter) -> MonsterRecord | None:
        """Create a record for *creature* if it is alive and has a position."""
        cid = creature.id()
        if not cid.ok or not creature.is_alive():
            return None
        existing = self._records.get(cid.value)
        if existing is not None:
            return existing
        pos = creature.position()
        if not pos.ok:
            return None

        now = self._clock()
        record = MonsterRecord(
            creature_id=cid.value,
            name=creature.name().unwrap_or("unknown"),
            tracking_start=now,
            last_position=pos.value,
            last_direction=creature.direction().unwrap_or(0),
            last_health=creature.health_percent().unwrap_or(100),
            last_sample_time=now,
            last_update=now,
            last_health_time=now,
            base_speed=creature.base_speed().unwrap_or(0.0),
            reported_speed=creature.speed().unwrap_or(0.0),
            cooldown=CooldownEstimate(alpha=self.ewma_alpha),
        )
        self._records[record.creature_id] = record
        self.total_tracked += 1
        logger.debug("Tracking %s #%d at %s", record.name, record.creature_id, pos.value)
        return record

    def set_ewma_alpha(self, alpha: float) -> None:
        """Apply a new cooldown smoothing factor to new and live records."""
        if alpha == self.ewma_alpha:
            return
        self.ewma_alpha = alpha
        for record in self._records.values():
            record.cooldown.alpha = alpha

    def untrack(self, creature_id: int, died: bool = False) -> MonsterRecord | None:
        """Remove the record and fold it into the type statistics."""
        record = self._records.pop(creature_id, None)
        if record is None:
            return None
        now = self._clock()
        stats = self._type_stats.setdefault(normalize_name(record.name), TypeStats())
        dps = self.dps(record, now)
        a = _TYPE_STATS_ALPHA
        if stats.encounters == 0:
            stats.avg_speed = record.reported_speed
            stats.avg_dps = dps
        else:
            stats.avg_speed = stats.avg_speed * (1 - a) + record.reported_speed * a
            stats.avg_dps = stats.avg_dps * (1 - a) + dps * a
        stats.total_damage += record.total_damage
        stats.wave_count += record.wave_count
        stats.encounters += 1
        stats.last_seen = now

        if died:
            kill_time = now - (record.engagement_start or record.tracking_start)
            stats.avg_kill_time = kill_time if stats.kills == 0 else stats.avg_kill_time * 0.8 + kill_time * 0.2
            stats.kills += 1
        logger.debug("Untracked %s #%d (died=%s)", record.name, creature_id, died)
        return record

    def prune_stale(self, now: int | None = None) -> list[int]:
        """Drop records without an update for ``stale_record_ms``."""
        now = self._clock() if now is None else now
        stale = [
            cid for cid, rec in self._records.items()
            if now - rec.last_update > self._config.stale_record_ms
        ]
        for cid in stale:
            self.untrack(cid)
        return stale

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def update(self, creature: CreatureAdapter) -> MonsterRecord | None:
        """Take one sample of *creature* and refresh every derived counter."""
        if not creature.is_alive():
            return None
        cid = creature.id()
        pos = creature.position()
        if not cid.ok or not pos.ok:
            return None
        record = self._records.get(cid.value) or self.track(creature)
        if record is None:
            return None

        now = self._clock()
        cfg = self._config
        position = pos.value
        direction = creature.direction().unwrap_or(record.last_direction)
        health = creature.health_percent().unwrap_or(record.last_health)

        record.samples.append(Sample(now, position, direction, health))
        horizon = now - cfg.analysis_window_ms
        while record.samples and record.samples[0].time < horizon:
            record.samples.popleft()

        self._sample_telemetry(record, creature, now)
        self._sample_direction(record, direction, now)
        self._sample_health(record, health, now)
        self._sample_movement(record, position, direction, now)

        record.last_position = position
        record.last_direction = direction
        record.last_sample_time = now
        record.last_update = now
        progress = min(record.movement_samples / cfg.confidence_sample_cap, 1.0)
        record.confidence = 0.1 + 0.6 * progress
        return record

    def _sample_telemetry(self, record: MonsterRecord, creature: CreatureAdapter, now: int) -> None:
        if now - record.last_telemetry < self.telemetry_interval_ms:
            return
        record.last_telemetry = now
        speed = creature.speed()
        if speed.ok:
            if record.reported_speed <= 0:
                record.reported_speed = float(speed.value)
            else:
                record.reported_speed = (
                    record.reported_speed * _TELEMETRY_SMOOTHING
                    + float(speed.value) * (1 - _TELEMETRY_SMOOTHING)
                )
        record.walk_samples.append(creature.is_walking())
        record.walking_ratio = sum(record.walk_samples) / len(record.walk_samples)
        self.telemetry_samples += 1

    def _sample_direction(self, record: MonsterRecord, direction: int, now: int) -> None:
        if direction == record.last_direction:
            return
        record.direction_changes += 1
        record.direction_history.append((now, direction))
        history = record.direction_history
        if len(history) >= 2:
            span_s = max((history[-1][0] - history[0][0]) / 1000.0, 1e-3)
            record.turn_frequency = (len(history) - 1) / span_s

    def _sample_health(self, record: MonsterRecord, health: int, now: int) -> None:
        if health == record.last_health:
            return
        dt_s = max((now - record.last_health_time) / 1000.0, 1e-3)
        record.health_change_rate = (health - record.last_health) / dt_s
        if health < record.last_health and record.engagement_start == 0:
            record.engagement_start = now
        record.health_samples.append((now, health))
        record.last_health = health
        record.last_health_time = now

    def _sample_movement(self, record: MonsterRecord, position: Position, direction: int, now: int) -> None:
        record.movement_samples += 1
        player = self._player_position()

        if player.ok and position.same_floor(player.value):
            distance = position.chebyshev(player.value)
            record.distance_samples.append(distance)
            record.avg_distance = sum(record.distance_samples) / len(record.distance_samples)
            if len(record.distance_samples) >= _MIN_PREFERRED_DISTANCE_SAMPLES:
                record.preferred_distance = Counter(record.distance_samples).most_common(1)[0][0]
            if is_facing_position(position, direction, player.value):
                record.facing_count += 1

        if position == record.last_position:
            record.stationary_count += 1
            return

        dt_s = (now - record.last_sample_time) / 1000.0
        if dt_s > 0:
            instant = position.chebyshev(record.last_position) / dt_s
            a = self._config.speed_ewma_alpha
            record.avg_speed = instant if record.avg_speed == 0 else record.avg_speed * (1 - a) + instant * a
        if player.ok and position.chebyshev(player.value) < record.last_position.chebyshev(player.value):
            record.chase_count += 1

    # ------------------------------------------------------------------
    # Combat bookkeeping
    # ------------------------------------------------------------------

    def record_damage(self, record: MonsterRecord, amount: float, now: int | None = None) -> None:
        now = self._clock() if now is None else now
        record.damage_samples.append((now, float(amount)))
        record.total_damage += amount
        record.hit_count += 1

    def dps(self, record: MonsterRecord, now: int | None = None) -> float:
        """Damage per second dealt by *record* over the DPS window."""
        now = self._clock() if now is None else now
        window = self._config.dps_window_ms
        total = sum(amount for t, amount in record.damage_samples if now - t <= window)
        return total / (window / 1000.0)

    def recent_damage(self, record: MonsterRecord, now: int | None = None) -> float:
        now = self._clock() if now is None else now
        window = self._config.dps_window_ms
        return sum(amount for t, amount in record.damage_samples if now - t <= window)
