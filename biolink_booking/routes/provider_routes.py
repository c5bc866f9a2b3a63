import re

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from biolink_booking.models.provider import Provider
from biolink_booking.routes.common import database_unavailable, ensure_database_ready, get_db

router = APIRouter(tags=['providers'])

USERNAME_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_-]{2,49}$')


class CreateProviderRequest(BaseModel):
    username: str
    name: str | None = None
    specialty: str | None = None
    clinic_address: str | None = None
    working_hours: str | None = None

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not USERNAME_PATTERN.match(normalized):
            raise ValueError('Username must be 3-50 characters of letters, digits, "-" or "_".')
        return normalized

    @field_validator('name', 'specialty', 'clinic_address', 'working_hours')
    @classmethod
    def strip_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class ProviderResponse(BaseModel):
    id: int
    username: str
    name: str | None = None
    specialty: str | None = None
    clinic_address: str | None = None
    working_hours: str | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
def create_provider(data: CreateProviderRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        provider = Provider(**data.model_dump(), booking_version=0)
        db.add(provider)
        db.commit()
        db.refresh(provider)
        return provider
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This username is already taken.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{username}', response_model=ProviderResponse)
def get_provider(username: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        provider = db.query(Provider).filter(Provider.username == username.strip().lower()).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if provider is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Provider not found.')

    return provider
