"""Availability model definitions."""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from biolink_booking.database import Base


class AvailabilityRule(Base):
    """Represents a provider's recurring weekly availability for one day."""
    __tablename__ = "availability_rules"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # Sunday=0
    start_time = Column(String, nullable=False)  # HH:MM
    end_time = Column(String, nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    slot_duration_minutes = Column(Integer, nullable=False, default=30)
    buffer_minutes = Column(Integer, nullable=False, default=15)
