import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from biolink_booking.core import config
from biolink_booking.models.provider import Provider
from biolink_booking.repositories.appointments import AppointmentRepository
from biolink_booking.repositories.rules import RuleRepository
from biolink_booking.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    scheduling_http_error,
)
from biolink_booking.scheduling.errors import InvalidTimeFormatError, SchedulingError
from biolink_booking.scheduling.resolver import DayAvailability, parse_time_of_day, resolve_day

router = APIRouter(tags=['availability'])
logger = logging.getLogger(__name__)


class UpsertAvailabilityRuleRequest(BaseModel):
    start_time: str
    end_time: str
    is_enabled: bool = True
    slot_duration_minutes: int = Field(default=config.DEFAULT_SLOT_DURATION_MINUTES, gt=0)
    buffer_minutes: int = Field(default=config.DEFAULT_BUFFER_MINUTES, ge=0)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time_of_day(cls, value: str) -> str:
        try:
            parsed = parse_time_of_day(value.strip())
        except InvalidTimeFormatError as exc:
            raise ValueError(str(exc)) from exc
        return parsed.strftime('%H:%M')

    @model_validator(mode='after')
    def validate_window(self):
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


class AvailabilityRuleResponse(BaseModel):
    id: int
    provider_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_enabled: bool
    slot_duration_minutes: int
    buffer_minutes: int

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    start: datetime
    end: datetime


def get_provider_or_404(provider_id: int, db: Session) -> Provider:
    provider = db.query(Provider).filter(Provider.id == provider_id).first()
    if provider is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Provider not found.')
    return provider


def load_day_availability(provider_id: int, target_date: date, db: Session) -> DayAvailability:
    # Rules and appointments are read through the same session.
    rules = RuleRepository(db).list_rules(provider_id)
    appointments = AppointmentRepository(db).get_active_appointments(provider_id, target_date)
    day = resolve_day(provider_id, target_date, rules, appointments)
    logger.debug('Provider %s on %s: %s with %d slots.', provider_id, target_date, day.status, len(day.slots))
    return day


@router.get('/{provider_id}/rules', response_model=list[AvailabilityRuleResponse])
def list_rules(provider_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        get_provider_or_404(provider_id, db)
        return RuleRepository(db).list_rules(provider_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{provider_id}/rules/{day_of_week}', response_model=AvailabilityRuleResponse)
def upsert_rule(
    provider_id: int,
    data: UpsertAvailabilityRuleRequest,
    day_of_week: int = Path(..., ge=0, le=6),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        get_provider_or_404(provider_id, db)
        return RuleRepository(db).replace_rule(
            provider_id,
            day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            is_enabled=data.is_enabled,
            slot_duration_minutes=data.slot_duration_minutes,
            buffer_minutes=data.buffer_minutes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{provider_id}/{target_date}', response_model=list[SlotResponse])
def list_available_slots(provider_id: int, target_date: date, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        get_provider_or_404(provider_id, db)
        day = load_day_availability(provider_id, target_date, db)
    except SchedulingError as exc:
        logger.warning('Availability rule for provider %s is misconfigured: %s', provider_id, exc)
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [SlotResponse(start=slot.start_at, end=slot.end_at) for slot in day.slots]
