"""Room store: the plants table is the single source of truth for a room."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import RoomStoreError, StaleWriteError
from .models import db, Plant
from .records import Role

logger = logging.getLogger(__name__)


def find_plant(room_id: str) -> Optional[Plant]:
    """Point read by key. ``None`` means no such room, anything else raises."""
    try:
        return Plant.query.filter_by(room_id=room_id).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise RoomStoreError(f"read failed for room {room_id}") from e


def insert_plant(room_id: str) -> Plant:
    """Create a fresh room with both counters at zero.

    Raises IntegrityError untouched when the key already exists so the
    resolver can tell a lost creation race from a broken database.
    """
    plant = Plant(room_id=room_id, p1_water=0, p2_water=0)
    db.session.add(plant)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise RoomStoreError(f"insert failed for room {room_id}") from e
    logger.info(f"Created room {room_id}")
    return plant


def resolve_plant(room_id: str) -> Plant:
    """Find or create the plant for an already normalized room id."""
    if not room_id:
        raise ValueError("room_id must not be empty")

    plant = find_plant(room_id)
    if plant is not None:
        return plant

    try:
        return insert_plant(room_id)
    except IntegrityError:
        # someone else created it between our read and insert
        logger.info(f"Lost creation race for room {room_id}, reading again")

    plant = find_plant(room_id)
    if plant is None:
        raise RoomStoreError(f"room {room_id} neither readable nor insertable")
    return plant


def record_water(room_id: str, role: Role, count: int, watered_at: Optional[datetime] = None) -> Plant:
    """Field-scoped update: set ``role``'s counter and the shared timestamp.

    Counters never go down; a write carrying a lower count than the stored one
    is refused with StaleWriteError and nothing is committed.
    """
    plant = find_plant(room_id)
    if plant is None:
        raise RoomStoreError(f"room {room_id} does not exist")

    current = role.count(plant)
    if count < current:
        raise StaleWriteError(f"{role.field} for {room_id} is {current}, refusing {count}")

    role.set_count(plant, count)
    plant.last_watered = watered_at or datetime.utcnow()
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise RoomStoreError(f"update failed for room {room_id}") from e
    return plant
