"""Appointment model definitions."""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, String, func, text
from biolink_booking.database import Base

APPOINTMENT_STATUSES = ("pending", "confirmed", "cancelled")
CANCELLED_STATUS = "cancelled"
# Rows the display path skips must not hold the unique slot either.
ACTIVE_SLOT_PREDICATE = "status <> 'cancelled' AND duration_minutes > 0"


class Appointment(Base):
    """Represents a patient booking against a provider's schedule."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_provider_start", "provider_id", "start_at"),
        Index(
            "uq_appointments_active_slot",
            "provider_id",
            "start_at",
            unique=True,
            sqlite_where=text(ACTIVE_SLOT_PREDICATE),
            postgresql_where=text(ACTIVE_SLOT_PREDICATE),
        ),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    full_name = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=30)
    status = Column(String, nullable=False, default="pending")
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())
