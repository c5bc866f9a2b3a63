from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from biolink_booking.database import SessionLocal, ensure_availability_schema, ensure_appointment_schema
from biolink_booking.scheduling.errors import ProviderNotFoundError, SchedulingError, SlotConflictError

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def scheduling_http_error(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, SlotConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This time is no longer available. Please choose another slot.',
        )
    if isinstance(exc, ProviderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Provider not found.')
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
