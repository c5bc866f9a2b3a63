"""Provider (doctor) profile model definitions."""

from sqlalchemy import Column, Integer, String
from biolink_booking.database import Base


class Provider(Base):
    """Represents a doctor whose biolink page accepts bookings."""
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    specialty = Column(String)
    clinic_address = Column(String)
    working_hours = Column(String)
    booking_version = Column(Integer, nullable=False, default=0)  # bumped per booking to lock the row
