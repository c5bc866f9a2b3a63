"""Storage access for appointments, including the commit-time conflict check."""

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from biolink_booking.models.appointment import Appointment, CANCELLED_STATUS
from biolink_booking.models.provider import Provider
from biolink_booking.scheduling.errors import (
    InvalidStatusTransitionError,
    ProviderNotFoundError,
    SlotConflictError,
)

logger = logging.getLogger(__name__)

ALLOWED_STATUS_TRANSITIONS = {
    'pending': {'pending', 'confirmed', 'cancelled'},
    'confirmed': {'confirmed', 'cancelled'},
    'cancelled': {'cancelled'},
}


def day_bounds(target_date: date) -> tuple[datetime, datetime]:
    day_start = datetime.combine(target_date, time.min)
    return day_start, day_start + timedelta(days=1)


class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_active_appointments(self, provider_id: int, target_date: date) -> list[Appointment]:
        """Non-cancelled appointments that can affect slots on ``target_date``.

        Appointments starting the previous day are included because a late
        booking can run past midnight.
        """
        day_start, day_end = day_bounds(target_date)
        return self.db.query(Appointment).filter(
            Appointment.provider_id == provider_id,
            Appointment.status != CANCELLED_STATUS,
            Appointment.start_at >= day_start - timedelta(days=1),
            Appointment.start_at < day_end,
        ).order_by(Appointment.start_at.asc()).all()

    def list_for_day(self, provider_id: int, target_date: date) -> list[Appointment]:
        day_start, day_end = day_bounds(target_date)
        return self.db.query(Appointment).filter(
            Appointment.provider_id == provider_id,
            Appointment.start_at >= day_start,
            Appointment.start_at < day_end,
        ).order_by(Appointment.start_at.asc()).all()

    def get(self, appointment_id: int) -> Appointment | None:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def _lock_provider(self, provider_id: int) -> None:
        # Bumping the version takes a row lock on PostgreSQL and the write lock
        # on SQLite, so bookings for one provider run one at a time.
        result = self.db.execute(
            update(Provider)
            .where(Provider.id == provider_id)
            .values(booking_version=Provider.booking_version + 1)
        )
        if result.rowcount == 0:
            raise ProviderNotFoundError(f'Provider {provider_id} does not exist.')

    def find_conflict(self, provider_id: int, start_at: datetime, end_at: datetime) -> Appointment | None:
        return self.db.query(Appointment).filter(
            Appointment.provider_id == provider_id,
            Appointment.status != CANCELLED_STATUS,
            Appointment.duration_minutes > 0,
            Appointment.start_at < end_at,
            Appointment.end_at > start_at,
        ).first()

    def create_if_no_conflict(
        self,
        provider_id: int,
        start_at: datetime,
        duration_minutes: int,
        details: dict,
    ) -> Appointment:
        if duration_minutes <= 0:
            raise ValueError('Appointment duration must be positive.')

        end_at = start_at + timedelta(minutes=duration_minutes)

        try:
            self._lock_provider(provider_id)

            conflict = self.find_conflict(provider_id, start_at, end_at)
            if conflict is not None:
                raise SlotConflictError(provider_id, start_at, end_at)

            appointment = Appointment(
                provider_id=provider_id,
                start_at=start_at,
                end_at=end_at,
                duration_minutes=duration_minutes,
                status=details.get('status', 'pending'),
                full_name=details['full_name'],
                phone_number=details['phone_number'],
                notes=details.get('notes'),
            )
            self.db.add(appointment)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.info('Booking for provider %s at %s lost a race to a concurrent insert.', provider_id, start_at)
            raise SlotConflictError(provider_id, start_at, end_at) from exc
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        return appointment

    def update_status(self, appointment_id: int, status: str) -> Appointment | None:
        appointment = self.get(appointment_id)
        if appointment is None:
            return None

        current_status = appointment.status or 'pending'
        if status not in ALLOWED_STATUS_TRANSITIONS.get(current_status, set()):
            raise InvalidStatusTransitionError(
                f'Cannot change appointment status from {current_status} to {status}.'
            )

        appointment.status = status
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def delete(self, appointment_id: int) -> bool:
        appointment = self.get(appointment_id)
        if appointment is None:
            return False

        self.db.delete(appointment)
        self.db.commit()
        return True
