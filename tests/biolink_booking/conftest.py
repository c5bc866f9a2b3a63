import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from biolink_booking.database import Base  # noqa: E402
from biolink_booking.models.appointment import Appointment  # noqa: E402
from biolink_booking.models.availability import AvailabilityRule  # noqa: E402
from biolink_booking.models.provider import Provider  # noqa: E402

TABLES = [Provider.__table__, AvailabilityRule.__table__, Appointment.__table__]


@pytest.fixture
def booking_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def provider(booking_db):
    doctor = Provider(username='dr-nguyen', name='Dr. Nguyen', specialty='Dermatology', booking_version=0)
    booking_db.add(doctor)
    booking_db.commit()
    booking_db.refresh(doctor)
    return doctor
