from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from docspot.core import config


def _connect_args(database_url: str) -> dict:
    # SQLite connections are shared across FastAPI's threadpool workers.
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
_appointment_schema_checked = False

LIVE_SLOT_INDEX_NAME = 'uq_appointments_doctor_date_slot_live'
_LEGACY_SLOT_INDEX_NAME = 'uq_appointments_doctor_date_slot_held'


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


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
            ('prescription', 'ALTER TABLE appointments ADD COLUMN prescription TEXT'),
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes TEXT'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(text(f'DROP INDEX IF EXISTS {_LEGACY_SLOT_INDEX_NAME}'))
            connection.execute(
                text(
                    f'CREATE UNIQUE INDEX IF NOT EXISTS {LIVE_SLOT_INDEX_NAME} '
                    "ON appointments(doctor_id, date, slot) WHERE status IN ('pending', 'approved')"
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_patient_date ON appointments(patient_id, date)')
            )

        _appointment_schema_checked = True
