"""Errors raised by availability resolution and booking."""


class SchedulingError(Exception):
    """Base class for scheduling failures surfaced to API callers."""


class InvalidTimeFormatError(SchedulingError):
    """A rule time is not a valid HH:MM value."""


class InvalidRuleError(SchedulingError):
    """A rule parses but cannot produce a schedule (e.g. end before start)."""


class SlotConflictError(SchedulingError):
    """The requested window overlaps an active appointment."""

    def __init__(self, provider_id: int, start_at, end_at):
        self.provider_id = provider_id
        self.start_at = start_at
        self.end_at = end_at
        super().__init__(f'Provider {provider_id} is already booked between {start_at} and {end_at}.')


class ProviderNotFoundError(SchedulingError):
    """No provider exists with the requested id."""


class InvalidStatusTransitionError(SchedulingError):
    """The appointment cannot move from its current status to the requested one."""
