from datetime import date, datetime, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from biolink_booking.models.appointment import Appointment
from biolink_booking.models.availability import AvailabilityRule
from biolink_booking.routes.availability_routes import (
    UpsertAvailabilityRuleRequest,
    list_available_slots,
    list_rules,
    upsert_rule,
)

MONDAY = date(2026, 1, 5)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('biolink_booking.routes.availability_routes.ensure_database_ready', lambda: None)


def add_rule(db, provider_id: int, **overrides) -> AvailabilityRule:
    values = {
        'provider_id': provider_id,
        'day_of_week': 1,
        'start_time': '09:00',
        'end_time': '12:00',
        'is_enabled': True,
        'slot_duration_minutes': 30,
        'buffer_minutes': 15,
    }
    values.update(overrides)
    rule = AvailabilityRule(**values)
    db.add(rule)
    db.commit()
    return rule


def test_upsert_rule_request_normalizes_times() -> None:
    request = UpsertAvailabilityRuleRequest(start_time=' 08:30 ', end_time='17:00')

    assert request.start_time == '08:30'
    assert request.slot_duration_minutes == 30
    assert request.buffer_minutes == 15


@pytest.mark.parametrize(
    'payload',
    [
        {'start_time': '8:30', 'end_time': '17:00'},
        {'start_time': '08:30', 'end_time': '24:00'},
        {'start_time': '17:00', 'end_time': '08:30'},
        {'start_time': '08:30', 'end_time': '08:30'},
        {'start_time': '08:30', 'end_time': '17:00', 'slot_duration_minutes': 0},
        {'start_time': '08:30', 'end_time': '17:00', 'buffer_minutes': -1},
    ],
)
def test_upsert_rule_request_rejects_invalid_rules(payload: dict) -> None:
    with pytest.raises(ValidationError):
        UpsertAvailabilityRuleRequest(**payload)


def test_list_available_slots_returns_buffered_slots(booking_db, provider) -> None:
    add_rule(booking_db, provider.id)

    slots = list_available_slots(provider_id=provider.id, target_date=MONDAY, db=booking_db)

    assert [(slot.start, slot.end) for slot in slots] == [
        (datetime(2026, 1, 5, 9, 0), datetime(2026, 1, 5, 9, 30)),
        (datetime(2026, 1, 5, 9, 45), datetime(2026, 1, 5, 10, 15)),
        (datetime(2026, 1, 5, 10, 30), datetime(2026, 1, 5, 11, 0)),
        (datetime(2026, 1, 5, 11, 15), datetime(2026, 1, 5, 11, 45)),
    ]


def test_list_available_slots_excludes_booked_slot(booking_db, provider) -> None:
    add_rule(booking_db, provider.id)
    start_at = datetime(2026, 1, 5, 10, 0)
    booking_db.add(
        Appointment(
            provider_id=provider.id,
            full_name='Existing Patient',
            phone_number='0900000000',
            start_at=start_at,
            end_at=start_at + timedelta(minutes=30),
            duration_minutes=30,
            status='confirmed',
        )
    )
    booking_db.commit()

    slots = list_available_slots(provider_id=provider.id, target_date=MONDAY, db=booking_db)

    assert [slot.start.time().isoformat() for slot in slots] == ['09:00:00', '10:30:00', '11:15:00']


def test_list_available_slots_is_empty_for_closed_day(booking_db, provider) -> None:
    add_rule(booking_db, provider.id, is_enabled=False)

    assert list_available_slots(provider_id=provider.id, target_date=MONDAY, db=booking_db) == []
    assert list_available_slots(provider_id=provider.id, target_date=MONDAY + timedelta(days=1), db=booking_db) == []


def test_list_available_slots_reports_misconfigured_rule(booking_db, provider) -> None:
    add_rule(booking_db, provider.id, start_time='9h')

    with pytest.raises(HTTPException) as exception_info:
        list_available_slots(provider_id=provider.id, target_date=MONDAY, db=booking_db)

    assert exception_info.value.status_code == 400


def test_list_available_slots_rejects_unknown_provider(booking_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_available_slots(provider_id=999, target_date=MONDAY, db=booking_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Provider not found.'


def test_upsert_rule_creates_then_replaces_rule(booking_db, provider) -> None:
    created = upsert_rule(
        provider_id=provider.id,
        data=UpsertAvailabilityRuleRequest(start_time='09:00', end_time='12:00'),
        day_of_week=1,
        db=booking_db,
    )
    replaced = upsert_rule(
        provider_id=provider.id,
        data=UpsertAvailabilityRuleRequest(start_time='13:00', end_time='15:00', slot_duration_minutes=60),
        day_of_week=1,
        db=booking_db,
    )

    assert replaced.id == created.id
    rules = list_rules(provider_id=provider.id, db=booking_db)
    assert [(rule.day_of_week, rule.start_time, rule.slot_duration_minutes) for rule in rules] == [(1, '13:00', 60)]


def test_list_rules_rejects_unknown_provider(booking_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_rules(provider_id=999, db=booking_db)

    assert exception_info.value.status_code == 404
