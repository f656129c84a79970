"""Persistence layer for the users' saved inputs.

This module keeps each browser session's ``AppState`` record in an external
database instead of browser storage. It defaults to SQLite for local
development, but accepts any SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL).

Storage is best effort: read and write failures are logged and swallowed, and
a user whose record cannot be read simply starts from the defaults.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from mortgage_coach.state import AppState

logger = logging.getLogger(__name__)

Base = declarative_base()


class SavedStateModel(Base):
    __tablename__ = "saved_states"

    user_token = Column(String(64), primary_key=True)
    state_json = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class StateStore:
    """Database-backed store of one ``AppState`` per user token."""

    def __init__(self, url: str) -> None:
        engine_kwargs = {"future": True}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, or every pooled connection gets its own empty database.
            engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
        self._engine = create_engine(url, **engine_kwargs)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def load(self, user_token: str) -> AppState:
        if not user_token:
            return AppState()
        try:
            with self._session_factory() as session:
                row = session.get(SavedStateModel, user_token)
                if row is None:
                    return AppState()
                data = json.loads(row.state_json)
        except (SQLAlchemyError, ValueError) as exc:
            logger.warning("Could not load saved state for %s: %s", user_token, exc)
            return AppState()
        return AppState.from_dict(data)

    def save(self, user_token: str, state: AppState) -> bool:
        if not user_token:
            return False
        try:
            with self._session_factory() as session:
                row = session.get(SavedStateModel, user_token)
                payload = json.dumps(state.to_dict())
                if row is None:
                    session.add(SavedStateModel(user_token=user_token, state_json=payload))
                else:
                    row.state_json = payload
                session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Could not save state for %s: %s", user_token, exc)
            return False
        return True

    def delete(self, user_token: str) -> None:
        if not user_token:
            return
        try:
            with self._session_factory() as session:
                row = session.get(SavedStateModel, user_token)
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Could not delete state for %s: %s", user_token, exc)


def create_store_from_env(url: str | None) -> StateStore:
    return StateStore(url or "sqlite:///mortgage_state.sqlite3")
