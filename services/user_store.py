# services/user_store.py
import uuid
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import User
from services.errors import UpstreamError, ValidationError


class SqlUserStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get_by_id(self, user_id) -> Optional[User]:
        try:
            uid = uuid.UUID(str(user_id))
        except ValueError:
            return None
        try:
            with self._session_factory() as db:
                return db.query(User).filter(User.id == uid).first()
        except SQLAlchemyError as e:
            raise UpstreamError(str(e)) from e

    def get_by_email(self, email: str) -> Optional[User]:
        try:
            with self._session_factory() as db:
                return db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as e:
            raise UpstreamError(str(e)) from e

    def create(self, email: str, password_hash: str) -> User:
        try:
            with self._session_factory() as db:
                user = User(email=email, password_hash=password_hash)
                db.add(user)
                db.commit()
                db.refresh(user)
                return user
        except IntegrityError as e:
            raise ValidationError("User already registered") from e
        except SQLAlchemyError as e:
            raise UpstreamError(str(e)) from e
