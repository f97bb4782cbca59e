import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from models.driver_model import Actor, DriverCreate, DriverProfile
from services.errors import ConflictError
from services.fleet_service import require_admin

logger = logging.getLogger(__name__)


def register_driver(session: Session, payload: DriverCreate, actor: Actor) -> DriverProfile:
    require_admin(actor)
    profile = DriverProfile(
        user_id=payload.user_id,
        full_name=payload.full_name.strip(),
        phone=payload.phone,
    )
    session.add(profile)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(f"User {payload.user_id} already has a driver profile") from e

    logger.info(f"Registered driver {profile.full_name}")
    return profile


def list_drivers(session: Session, actor: Actor) -> List[DriverProfile]:
    require_admin(actor)
    return list(session.exec(select(DriverProfile).order_by(DriverProfile.full_name)).all())
