import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from biolink_booking.models.appointment import APPOINTMENT_STATUSES
from biolink_booking.repositories.appointments import AppointmentRepository
from biolink_booking.repositories.rules import RuleRepository
from biolink_booking.routes.availability_routes import get_provider_or_404
from biolink_booking.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    scheduling_http_error,
)
from biolink_booking.scheduling.errors import SchedulingError
from biolink_booking.scheduling.resolver import resolve_booking_window

router = APIRouter(tags=['appointments'])
logger = logging.getLogger(__name__)

MIN_FULL_NAME_LENGTH = 2
MIN_PHONE_NUMBER_LENGTH = 10
MAX_APPOINTMENT_NOTES_LENGTH = 600
BOOKABLE_DURATIONS = (30, 60, 90, 120)


class CreateAppointmentRequest(BaseModel):
    provider_id: int
    start_at: datetime
    full_name: str
    phone_number: str
    duration_minutes: int | None = None
    notes: str | None = None

    @field_validator('start_at')
    @classmethod
    def validate_start_at(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            raise ValueError('Start time must be a local time without a UTC offset.')
        if value.second or value.microsecond:
            raise ValueError('Start time must fall on a whole minute.')
        return value

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        normalized = ' '.join(value.split())
        if len(normalized) < MIN_FULL_NAME_LENGTH:
            raise ValueError('Full name is required.')
        return normalized

    @field_validator('phone_number')
    @classmethod
    def validate_phone_number(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < MIN_PHONE_NUMBER_LENGTH:
            raise ValueError('Valid phone number is required.')
        return normalized

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        if value is not None and value not in BOOKABLE_DURATIONS:
            raise ValueError(f'Duration must be one of {", ".join(str(d) for d in BOOKABLE_DURATIONS)} minutes.')
        return value

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class UpdateAppointmentStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in APPOINTMENT_STATUSES:
            raise ValueError('Invalid appointment status.')
        return normalized


class AppointmentResponse(BaseModel):
    id: int
    provider_id: int
    full_name: str
    phone_number: str
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    status: str
    notes: str | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    if data.start_at <= datetime.now():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointments must be scheduled in the future.',
        )

    try:
        get_provider_or_404(data.provider_id, db)

        rules = RuleRepository(db).list_rules(data.provider_id)
        window = resolve_booking_window(data.provider_id, data.start_at, rules, data.duration_minutes)
        if window is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='The requested time is not one of the provider\'s bookable slots.',
            )

        duration_minutes = int((window.end_at - window.start_at).total_seconds() // 60)
        appointment = AppointmentRepository(db).create_if_no_conflict(
            data.provider_id,
            window.start_at,
            duration_minutes,
            {
                'full_name': data.full_name,
                'phone_number': data.phone_number,
                'notes': data.notes,
            },
        )
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Booked appointment %s for provider %s at %s.', appointment.id, appointment.provider_id, appointment.start_at)
    return appointment


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    provider_id: int = Query(...),
    target_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        get_provider_or_404(provider_id, db)
        return AppointmentRepository(db).list_for_day(provider_id, target_date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateAppointmentStatusRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = AppointmentRepository(db).update_status(appointment_id, data.status)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found.')

    return appointment


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        deleted = AppointmentRepository(db).delete(appointment_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found.')
