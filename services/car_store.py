# services/car_store.py
from __future__ import annotations
import logging
import uuid
from typing import Callable, Dict, List, Optional

from sqlalchemy import any_, or_, select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Car
from services.errors import UpstreamError
from services.normalize import normalize_car_record

logger = logging.getLogger(__name__)

CAR_FIELDS = {"title", "description", "tags", "images", "cover_image", "updated_at"}


def _as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _tag_match(db: Session, search: str):
    """Exact element match on tags: text[] on Postgres, the JSON variant elsewhere."""
    if db.get_bind().dialect.name == "postgresql":
        return search == any_(Car.tags)
    elem = func.json_each(Car.tags).table_valued("value")
    return select(elem.c.value).where(elem.c.value == search).exists()


class SqlCarStore:
    """
    Record store for cars backed by SQLAlchemy. Every read goes through
    normalize_car_record, so callers never see legacy tag/image shapes.
    Driver errors abort the operation as UpstreamError.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def insert(self, owner_id, title: str, description: Optional[str], tags: List[str]) -> Dict:
        try:
            with self._session_factory() as db:
                car = Car(
                    user_id=_as_uuid(owner_id),
                    title=title,
                    description=description,
                    tags=tags,
                    images=[],
                )
                db.add(car)
                db.commit()
                db.refresh(car)
                return normalize_car_record(car.to_record())
        except SQLAlchemyError as e:
            logger.exception("car insert failed for user=%s", owner_id)
            raise UpstreamError(str(e)) from e

    def fetch(self, car_id) -> Optional[Dict]:
        cid = _as_uuid(car_id)
        if cid is None:
            return None
        try:
            with self._session_factory() as db:
                car = db.query(Car).filter(Car.id == cid).first()
                return normalize_car_record(car.to_record()) if car else None
        except SQLAlchemyError as e:
            raise UpstreamError(str(e)) from e

    def list_for_owner(self, owner_id, search: Optional[str] = None) -> List[Dict]:
        try:
            with self._session_factory() as db:
                q = db.query(Car).filter(Car.user_id == _as_uuid(owner_id))
                if search:
                    q = q.filter(
                        or_(
                            Car.title.icontains(search, autoescape=True),
                            Car.description.icontains(search, autoescape=True),
                            _tag_match(db, search),
                        )
                    )
                rows = q.order_by(Car.created_at.desc()).all()
                return [normalize_car_record(c.to_record()) for c in rows]
        except SQLAlchemyError as e:
            raise UpstreamError(str(e)) from e

    def update(self, car_id, fields: Dict) -> Dict:
        """Write whitelisted columns and return the fresh row."""
        patch = {k: v for k, v in fields.items() if k in CAR_FIELDS}
        try:
            with self._session_factory() as db:
                car = db.query(Car).filter(Car.id == _as_uuid(car_id)).first()
                if car is None:
                    raise UpstreamError(f"Car {car_id} disappeared during update")
                for key, value in patch.items():
                    setattr(car, key, value)
                db.commit()
                db.refresh(car)
                return normalize_car_record(car.to_record())
        except SQLAlchemyError as e:
            logger.exception("car update failed for car=%s", car_id)
            raise UpstreamError(str(e)) from e

    def delete(self, car_id) -> bool:
        try:
            with self._session_factory() as db:
                rows = (
                    db.query(Car)
                    .filter(Car.id == _as_uuid(car_id))
                    .delete(synchronize_session=False)
                )
                db.commit()
                return rows > 0
        except SQLAlchemyError as e:
            logger.exception("car delete failed for car=%s", car_id)
            raise UpstreamError(str(e)) from e
