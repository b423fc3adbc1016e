from threading import Lock

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import declarative_base, sessionmaker

from scheduling_gateway.core import config


def _engine_options(database_url: str) -> dict:
    if database_url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {}


engine = create_engine(config.CREDENTIALS_DATABASE_URL, **_engine_options(config.CREDENTIALS_DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_credentials_schema_checked = False


def ensure_credentials_schema() -> None:
    global _credentials_schema_checked

    if _credentials_schema_checked:
        return

    with _schema_lock:
        if _credentials_schema_checked:
            return

        # Imported here so the model registers on Base before create_all.
        from scheduling_gateway.models.credentials import StoredCredentials

        if StoredCredentials.__tablename__ not in inspect(engine).get_table_names():
            Base.metadata.create_all(bind=engine, tables=[StoredCredentials.__table__])

        _credentials_schema_checked = True
