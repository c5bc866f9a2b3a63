from datetime import timedelta
from threading import Lock

from sqlalchemy import DateTime, Integer, column, create_engine, inspect, select, table, text, update
from sqlalchemy.orm import declarative_base, sessionmaker

from biolink_booking.core import config


def _connect_args(database_url: str) -> dict:
    # SQLite connections are shared with FastAPI's threadpool.
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    connect_args=_connect_args(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability_rules' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability_rules')}
        migration_steps = [
            ('slot_duration_minutes', 'ALTER TABLE availability_rules ADD COLUMN slot_duration_minutes INTEGER DEFAULT 30'),
            ('buffer_minutes', 'ALTER TABLE availability_rules ADD COLUMN buffer_minutes INTEGER DEFAULT 15'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_availability_rules_provider_day '
                    'ON availability_rules(provider_id, day_of_week)'
                )
            )

        _availability_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('duration_minutes', 'ALTER TABLE appointments ADD COLUMN duration_minutes INTEGER DEFAULT 30'),
            ('end_at', 'ALTER TABLE appointments ADD COLUMN end_at TIMESTAMP'),
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_provider_start ON appointments(provider_id, start_at)')
            )
            _backfill_appointment_end(connection)
            connection.execute(text('DROP INDEX IF EXISTS uq_appointments_active_start'))
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_slot '
                    "ON appointments(provider_id, start_at) "
                    "WHERE status <> 'cancelled' AND duration_minutes > 0"
                )
            )

        _appointment_schema_checked = True


def _backfill_appointment_end(connection) -> None:
    # Rows written before end_at existed still need it for the overlap query.
    appointments = table(
        'appointments',
        column('id', Integer),
        column('start_at', DateTime),
        column('duration_minutes', Integer),
        column('end_at', DateTime),
    )
    rows = connection.execute(
        select(appointments.c.id, appointments.c.start_at, appointments.c.duration_minutes).where(
            appointments.c.end_at.is_(None),
            appointments.c.start_at.is_not(None),
            appointments.c.duration_minutes.is_not(None),
        )
    ).all()

    for appointment_id, start_at, duration_minutes in rows:
        connection.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(end_at=start_at + timedelta(minutes=duration_minutes))
        )
