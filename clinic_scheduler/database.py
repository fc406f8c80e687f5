from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_scheduler.core import config


connect_args = {'check_same_thread': False} if config.DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(config.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    # Register every model on Base.metadata before create_all.
    from clinic_scheduler.models import appointment, clinic, doctor, doctor_schedule, holiday, service, shift, user  # noqa: F401

    Base.metadata.create_all(bind=engine)


def ensure_appointment_schema() -> None:
    """Bring an older appointments table up to date.

    The unique index on (doctor_id, appointment_date, start_time) is what makes
    concurrent generation runs safe, so it is created even when the table
    predates the model's constraint.
    """
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
            ('capacity', 'ALTER TABLE appointments ADD COLUMN capacity INTEGER DEFAULT 1'),
            ('expire_at', 'ALTER TABLE appointments ADD COLUMN expire_at TIMESTAMP'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_doctor_date_start '
                    'ON appointments(doctor_id, appointment_date, start_time)'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status)')
            )

        _appointment_schema_checked = True
