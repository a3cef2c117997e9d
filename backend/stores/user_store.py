"""Persistent user storage used by the authentication flows."""

import logging
from typing import Protocol

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.auth.errors import DuplicateUserError
from backend.database import get_db
from backend.models.user import User

logger = logging.getLogger(__name__)


class UserStore(Protocol):
    def find_by_email(self, email: str) -> User | None: ...

    def create(self, *, name: str, email: str, password_hash: str, role: str) -> User: ...


class SqlUserStore:
    """User store backed by a request-scoped SQLAlchemy session.

    ``create`` never upserts: the unique index on ``users.email`` decides
    races between concurrent requests, and the loser gets a
    ``DuplicateUserError``.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def create(self, *, name: str, email: str, password_hash: str, role: str) -> User:
        user = User(name=name, email=email, password_hash=password_hash, role=role)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.info("User insert rejected by unique email constraint")
            raise DuplicateUserError() from exc
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(user)
        return user


def get_user_store(db: Session = Depends(get_db)) -> UserStore:
    return SqlUserStore(db)
