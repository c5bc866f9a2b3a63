"""Availability resolution.

Turns a provider's weekly availability rules into the concrete slots that
can be booked on one calendar date. Everything here is a pure function of
its arguments: no database access and no clock reads, so the same rules and
appointment snapshot always resolve to the same slots.

Rules and appointments are read by attribute, so ORM rows and plain objects
(``types.SimpleNamespace`` in tests) are accepted alike.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable

from biolink_booking.core import config
from biolink_booking.scheduling.errors import InvalidRuleError, InvalidTimeFormatError

logger = logging.getLogger(__name__)

TIME_OF_DAY_PATTERN = re.compile(r'([01][0-9]|2[0-3]):([0-5][0-9])')
CANCELLED_STATUS = 'cancelled'

DAY_STATUS_NO_RULE = 'no_rule'
DAY_STATUS_DISABLED = 'disabled'
DAY_STATUS_OPEN = 'open'


@dataclass(frozen=True)
class Slot:
    start_at: datetime
    end_at: datetime

    def to_dict(self) -> dict:
        return {'start': self.start_at.isoformat(), 'end': self.end_at.isoformat()}


@dataclass(frozen=True)
class DayAvailability:
    """Slots for a date together with why the day looks the way it does.

    ``no_rule`` and ``disabled`` both carry an empty slot list; ``open`` may
    also be empty when every slot is taken.
    """

    status: str
    slots: list[Slot] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.status != DAY_STATUS_OPEN


@dataclass(frozen=True)
class ParsedRule:
    start: time
    end: time
    slot_duration_minutes: int
    buffer_minutes: int


def day_of_week_index(target_date: date) -> int:
    """Sunday=0 through Saturday=6."""
    return target_date.isoweekday() % 7


def parse_time_of_day(value: str) -> time:
    if not isinstance(value, str):
        raise InvalidTimeFormatError(f'Expected an HH:MM string, got {value!r}.')

    match = TIME_OF_DAY_PATTERN.fullmatch(value)
    if match is None:
        raise InvalidTimeFormatError(f'Invalid time {value!r}; expected HH:MM between 00:00 and 23:59.')

    return time(int(match.group(1)), int(match.group(2)))


def _value_or_default(value, default):
    return default if value is None else value


def validate_rule(rule) -> ParsedRule:
    start = parse_time_of_day(rule.start_time)
    end = parse_time_of_day(rule.end_time)

    if end <= start:
        raise InvalidRuleError(f'Rule end time {rule.end_time} must be after start time {rule.start_time}.')

    slot_duration_minutes = _value_or_default(rule.slot_duration_minutes, config.DEFAULT_SLOT_DURATION_MINUTES)
    buffer_minutes = _value_or_default(rule.buffer_minutes, config.DEFAULT_BUFFER_MINUTES)

    if slot_duration_minutes <= 0:
        raise InvalidRuleError('Slot duration must be a positive number of minutes.')
    if buffer_minutes < 0:
        raise InvalidRuleError('Buffer cannot be negative.')

    return ParsedRule(
        start=start,
        end=end,
        slot_duration_minutes=slot_duration_minutes,
        buffer_minutes=buffer_minutes,
    )


def find_rule(provider_id: int, day_of_week: int, rules: Iterable):
    """Return the first rule for the provider and day, in the order given.

    Callers pass rules in insertion order, which makes the earliest rule win
    when a day has more than one.
    """
    for rule in rules:
        if rule.provider_id == provider_id and rule.day_of_week == day_of_week:
            return rule
    return None


def generate_candidate_slots(target_date: date, parsed_rule: ParsedRule) -> list[Slot]:
    cursor = datetime.combine(target_date, parsed_rule.start)
    day_end = datetime.combine(target_date, parsed_rule.end)
    duration = timedelta(minutes=parsed_rule.slot_duration_minutes)
    step = duration + timedelta(minutes=parsed_rule.buffer_minutes)

    candidates: list[Slot] = []
    while cursor + duration <= day_end:
        candidates.append(Slot(start_at=cursor, end_at=cursor + duration))
        cursor += step

    return candidates


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    # Half-open intervals: windows that only touch do not overlap.
    return start_a < end_b and end_a > start_b


def blocking_windows(provider_id: int, appointments: Iterable) -> list[tuple[datetime, datetime]]:
    windows: list[tuple[datetime, datetime]] = []

    for appointment in appointments:
        if appointment.provider_id != provider_id:
            continue
        if (appointment.status or '').strip().lower() == CANCELLED_STATUS:
            continue

        duration_minutes = appointment.duration_minutes
        if duration_minutes is None or duration_minutes <= 0:
            logger.warning(
                'Ignoring appointment %s for provider %s with invalid duration %r.',
                getattr(appointment, 'id', None),
                provider_id,
                duration_minutes,
            )
            continue

        windows.append((appointment.start_at, appointment.start_at + timedelta(minutes=duration_minutes)))

    return windows


def resolve_day(provider_id: int, target_date: date, rules: Iterable, appointments: Iterable) -> DayAvailability:
    rule = find_rule(provider_id, day_of_week_index(target_date), rules)
    if rule is None:
        return DayAvailability(status=DAY_STATUS_NO_RULE)
    if not rule.is_enabled:
        return DayAvailability(status=DAY_STATUS_DISABLED)

    parsed_rule = validate_rule(rule)
    candidates = generate_candidate_slots(target_date, parsed_rule)
    windows = blocking_windows(provider_id, appointments)

    slots = [
        slot
        for slot in candidates
        if not any(overlaps(slot.start_at, slot.end_at, start, end) for start, end in windows)
    ]
    return DayAvailability(status=DAY_STATUS_OPEN, slots=slots)


def resolve_slots(provider_id: int, target_date: date, rules: Iterable, appointments: Iterable) -> list[Slot]:
    return resolve_day(provider_id, target_date, rules, appointments).slots


def resolve_booking_window(
    provider_id: int,
    start_at: datetime,
    rules: Iterable,
    duration_minutes: int | None = None,
) -> Slot | None:
    """Window a booking starting at ``start_at`` would occupy, ignoring appointments.

    Returns None when the day is closed, ``start_at`` is not the start of a
    generated slot, or a longer ``duration_minutes`` would run past the end
    of the rule.
    """
    target_date = start_at.date()
    rule = find_rule(provider_id, day_of_week_index(target_date), rules)
    if rule is None or not rule.is_enabled:
        return None

    parsed_rule = validate_rule(rule)
    candidate = next(
        (slot for slot in generate_candidate_slots(target_date, parsed_rule) if slot.start_at == start_at),
        None,
    )
    if candidate is None or duration_minutes is None:
        return candidate

    end_at = start_at + timedelta(minutes=duration_minutes)
    if end_at > datetime.combine(target_date, parsed_rule.end):
        return None
    return Slot(start_at=start_at, end_at=end_at)
