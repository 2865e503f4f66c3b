"""
Slot grid construction.

Turns a school's TimetableConfig into the ordered set of schedulable
(day, period) slots. Every working day shares the same daily template:
periods of `period_duration` minutes starting at school start, skipping
break intervals, and stopping at the last period that ends by school end.

Period numbers are 1-based and keep counting across breaks, so two slots
with consecutive numbers are only adjacent when the first one ends exactly
where the second one starts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

from .data.models import TimetableConfig, Weekday, day_name, minutes_to_time
from .errors import InvalidConfig


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class Slot:
    """One schedulable period on one day."""
    day: Weekday
    period: int
    start_minutes: int
    end_minutes: int

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start_minutes)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end_minutes)

    @property
    def key(self) -> tuple[Weekday, int]:
        return (self.day, self.period)

    def __str__(self) -> str:
        return f"{day_name(self.day)} P{self.period} {self.start_time}-{self.end_time}"


@dataclass(frozen=True)
class ResolvedBreak:
    """A break with concrete wall-clock bounds."""
    name: str
    start_minutes: int
    end_minutes: int

    def __str__(self) -> str:
        return f"{self.name} {minutes_to_time(self.start_minutes)}-{minutes_to_time(self.end_minutes)}"


def is_adjacent(first: Slot, second: Slot) -> bool:
    """True when `second` directly follows `first` on the same day with no break between."""
    return (
        first.day == second.day
        and second.period == first.period + 1
        and first.end_minutes == second.start_minutes
    )


@dataclass(frozen=True)
class SlotGrid:
    """Ordered schedulable slots for every working day."""
    days: tuple[Weekday, ...]
    slots_by_day: dict[Weekday, tuple[Slot, ...]] = field(default_factory=dict)
    breaks: tuple[ResolvedBreak, ...] = ()

    def day_slots(self, day: Weekday) -> tuple[Slot, ...]:
        return self.slots_by_day.get(day, ())

    def all_slots(self) -> list[Slot]:
        """All slots, working-day order first, then period order."""
        return [slot for day in self.days for slot in self.day_slots(day)]

    def get(self, day: Weekday, period: int) -> Optional[Slot]:
        for slot in self.day_slots(day):
            if slot.period == period:
                return slot
        return None

    def adjacent_pairs(self, day: Optional[Weekday] = None) -> list[tuple[Slot, Slot]]:
        """Break-free consecutive slot pairs, for one day or the whole week."""
        days = (day,) if day is not None else self.days
        pairs: list[tuple[Slot, Slot]] = []
        for d in days:
            slots = self.day_slots(d)
            for first, second in zip(slots, slots[1:]):
                if is_adjacent(first, second):
                    pairs.append((first, second))
        return pairs

    @property
    def periods_per_day(self) -> int:
        return len(self.day_slots(self.days[0])) if self.days else 0

    @property
    def capacity(self) -> int:
        """Total schedulable slots per week."""
        return sum(len(self.day_slots(d)) for d in self.days)

    def __len__(self) -> int:
        return self.capacity

    def __iter__(self) -> Iterator[Slot]:
        return iter(self.all_slots())


# =============================================================================
# Validation
# =============================================================================

def _overlaps(s1: int, e1: int, s2: int, e2: int) -> bool:
    return s1 < e2 and s2 < e1


def validate_config(config: Optional[TimetableConfig]) -> None:
    """
    Check a time configuration before building the grid.

    Raises:
        InvalidConfig: If the configuration cannot produce a valid grid
    """
    if config is None:
        raise InvalidConfig(
            "Timetable configuration not found. Configure school hours first."
        )

    start, end = config.start_minutes, config.end_minutes

    if not config.working_days:
        raise InvalidConfig("At least one working day is required")
    if start >= end:
        raise InvalidConfig(
            f"School start ({config.school_start_time}) must be before "
            f"school end ({config.school_end_time})"
        )
    if config.period_duration <= 0:
        raise InvalidConfig(f"Period duration must be positive, got {config.period_duration}")

    timed: list[tuple[int, int, str]] = []
    seen_periods: set[int] = set()

    for brk in config.breaks:
        label = str(brk)
        if brk.is_timed:
            b_start, b_end = brk.start_minutes, brk.end_minutes
            if b_start >= b_end:
                raise InvalidConfig(f"{label}: start must be before end")
            if b_start < start or b_end > end:
                raise InvalidConfig(
                    f"{label}: falls outside the school day "
                    f"{config.school_start_time}-{config.school_end_time}"
                )
            timed.append((b_start, b_end, label))
        else:
            if brk.after_period < 1:
                raise InvalidConfig(f"{label}: after_period must be at least 1")
            if brk.duration_minutes <= 0:
                raise InvalidConfig(f"{label}: duration must be positive")
            if brk.after_period in seen_periods:
                raise InvalidConfig(f"{label}: another break already follows period {brk.after_period}")
            seen_periods.add(brk.after_period)

    timed.sort()
    for (s1, e1, l1), (s2, e2, l2) in zip(timed, timed[1:]):
        if _overlaps(s1, e1, s2, e2):
            raise InvalidConfig(f"Breaks overlap: {l1} and {l2}")


# =============================================================================
# Grid Construction
# =============================================================================

def build_slot_grid(config: Optional[TimetableConfig]) -> SlotGrid:
    """
    Build the weekly slot grid for a configuration.

    Pure and deterministic: identical configs produce identical grids.

    Raises:
        InvalidConfig: If the configuration is malformed or no period fits
    """
    validate_config(config)

    template, breaks = _build_day_template(config)
    if not template:
        raise InvalidConfig(
            f"No {config.period_duration}-minute period fits between "
            f"{config.school_start_time} and {config.school_end_time}"
        )

    slots_by_day = {
        day: tuple(Slot(day, period, s, e) for period, s, e in template)
        for day in config.working_days
    }

    return SlotGrid(
        days=tuple(config.working_days),
        slots_by_day=slots_by_day,
        breaks=tuple(breaks),
    )


def _build_day_template(
    config: TimetableConfig,
) -> tuple[list[tuple[int, int, int]], list[ResolvedBreak]]:
    """Walk one school day, emitting (period, start, end) and resolving breaks."""
    start, end = config.start_minutes, config.end_minutes
    duration = config.period_duration

    timed = sorted(
        (ResolvedBreak(b.name or "Break", b.start_minutes, b.end_minutes)
         for b in config.breaks if b.is_timed),
        key=lambda b: b.start_minutes,
    )
    indexed = {b.after_period: b for b in config.breaks if not b.is_timed}
    resolved: list[ResolvedBreak] = list(timed)

    template: list[tuple[int, int, int]] = []
    cursor = start
    period = 1

    while cursor + duration <= end:
        active = next((b for b in timed if b.start_minutes <= cursor < b.end_minutes), None)
        if active:
            cursor = active.end_minutes
            continue

        slot_end = cursor + duration
        interrupting = next((b for b in timed if cursor < b.start_minutes < slot_end), None)
        if interrupting:
            cursor = interrupting.end_minutes
            continue

        template.append((period, cursor, slot_end))
        cursor = slot_end

        brk = indexed.pop(period, None)
        if brk is not None:
            placed = ResolvedBreak(brk.name or "Break", cursor, cursor + brk.duration_minutes)
            if placed.end_minutes > end:
                raise InvalidConfig(f"{brk}: runs past the end of the school day")
            for other in resolved:
                if _overlaps(placed.start_minutes, placed.end_minutes,
                             other.start_minutes, other.end_minutes):
                    raise InvalidConfig(f"Breaks overlap: {placed} and {other}")
            resolved.append(placed)
            cursor = placed.end_minutes

        period += 1

    if indexed:
        missing = ", ".join(str(p) for p in sorted(indexed))
        raise InvalidConfig(f"Break scheduled after period(s) {missing}, which never occur")

    resolved.sort(key=lambda b: b.start_minutes)
    return template, resolved
