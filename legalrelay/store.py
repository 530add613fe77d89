"""
User data store
===============

Pass-through persistence for small per-user JSON snapshots, keyed by
``(email, serial)``. Any SQLAlchemy URL works; production points
``DATABASE_URL`` at the hosted Postgres instance, tests use in-memory SQLite.

Every operation runs in its own session. SQLAlchemy errors are rolled back and
re-raised as ``StoreFailure`` with the driver's message; nothing is retried.
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from legalrelay.errors import NotFoundError, StoreFailure

log = logging.getLogger("legalrelay.store")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Base(DeclarativeBase):
    pass


class UserDataRecord(Base):
    """One JSON snapshot for an email; ``serial`` numbers the snapshots."""

    __tablename__ = "user_data"
    __table_args__ = (UniqueConstraint("email", "serial", name="uq_user_data_email_serial"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), index=True, nullable=False)
    serial: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "serial": self.serial,
            "data": self.data,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database.
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


class UserDataStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreFailure(str(exc)) from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            log.error("User data store error: %s", exc)
            raise StoreFailure(str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _find(session: Session, email: str, serial: int) -> Optional[UserDataRecord]:
        return session.scalars(
            select(UserDataRecord).where(
                UserDataRecord.email == email, UserDataRecord.serial == serial
            )
        ).first()

    def save(self, email: str, serial: int, data: Any) -> Tuple[Dict[str, Any], str]:
        """
        Insert or update the snapshot for ``(email, serial)``.
        Returns the stored row and "insert" or "update".

        A concurrent first save for the same key can win the insert; the unique
        constraint rejects ours and it is retried as an update of that row.
        """
        with self._session() as session:
            record = self._find(session, email, serial)
            operation = "update"
            if record is None:
                record = UserDataRecord(email=email, serial=serial, data=data)
                session.add(record)
                try:
                    session.flush()
                    operation = "insert"
                except IntegrityError:
                    session.rollback()
                    log.info("save user data: serial=%d lost insert race, updating", serial)
                    record = self._find(session, email, serial)
                    if record is None:
                        raise
            if operation == "update":
                record.data = data
                record.updated_at = _utcnow()
            session.flush()
            row = record.to_dict()
        log.info("save user data: serial=%d operation=%s", serial, operation)
        return row, operation

    def get(self, email: str) -> List[Dict[str, Any]]:
        with self._session() as session:
            records = session.scalars(
                select(UserDataRecord)
                .where(UserDataRecord.email == email)
                .order_by(UserDataRecord.serial.asc())
            ).all()
            rows = [r.to_dict() for r in records]
        if not rows:
            raise NotFoundError("No data found for this email", error="User data not found")
        return rows

    def latest(self, email: str) -> Optional[Dict[str, Any]]:
        with self._session() as session:
            record = session.scalars(
                select(UserDataRecord)
                .where(UserDataRecord.email == email)
                .order_by(UserDataRecord.serial.desc())
            ).first()
            return record.to_dict() if record else None

    def count(self, email: str) -> int:
        with self._session() as session:
            return session.scalar(
                select(func.count()).select_from(UserDataRecord).where(UserDataRecord.email == email)
            ) or 0

    def delete(self, email: str, serial: int) -> None:
        with self._session() as session:
            record = self._find(session, email, serial)
            if record is None:
                raise NotFoundError(
                    f"No record for serial {serial}", error="User data not found"
                )
            session.delete(record)
        log.info("deleted user data: serial=%d", serial)
