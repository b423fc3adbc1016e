from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduling_gateway.database import SessionLocal, ensure_credentials_schema
from scheduling_gateway.models.credentials import StoredCredentials


@dataclass(frozen=True)
class SavedCredentials:
    client_id: str
    client_secret: str
    use_backend_proxy: bool = True


class CredentialStore:
    """Keeps one set of client credentials for silent re-authentication."""

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self._session_factory = session_factory
        if session_factory is None:
            self._session_factory = SessionLocal
            self._ensure_schema = ensure_credentials_schema
        else:
            self._ensure_schema = lambda: None

    def save(self, client_id: str, client_secret: str, use_backend_proxy: bool = True) -> None:
        self._ensure_schema()
        db = self._session_factory()
        try:
            db.query(StoredCredentials).delete()
            db.add(
                StoredCredentials(
                    client_id=client_id,
                    client_secret=client_secret,
                    use_backend_proxy=use_backend_proxy,
                )
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def load(self) -> SavedCredentials | None:
        self._ensure_schema()
        db = self._session_factory()
        try:
            row = db.query(StoredCredentials).order_by(StoredCredentials.id.desc()).first()
            if row is None:
                return None
            return SavedCredentials(
                client_id=row.client_id,
                client_secret=row.client_secret,
                use_backend_proxy=bool(row.use_backend_proxy),
            )
        finally:
            db.close()

    def clear(self) -> None:
        self._ensure_schema()
        db = self._session_factory()
        try:
            db.query(StoredCredentials).delete()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()
