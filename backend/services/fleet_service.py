import os
import logging
from typing import List, Optional

import pandas as pd
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from models.ambulance_model import Ambulance, AmbulanceCreate, AmbulanceStatus, utcnow
from models.driver_model import Actor, DriverProfile, Role
from models.request_model import ACTIVE_STATUSES, EmergencyRequest
from services.errors import ConflictError, NotFoundError, PermissionDeniedError
from services.realtime_service import change_feed

logger = logging.getLogger(__name__)


def require_admin(actor: Actor):
    if actor.role != Role.ADMIN:
        raise PermissionDeniedError("Administrator access required")


def preprocess_fleet_data(df: pd.DataFrame) -> pd.DataFrame:
    """
    Standardizes fleet data from CSV into a consistent DataFrame.
    Expected columns: Plate, Lat, Long
    """
    df = df.rename(columns={
        'Plate': 'plate_number',
        'Lat': 'base_lat',
        'Long': 'base_lng',
    })

    df['plate_number'] = df['plate_number'].astype(str).str.strip().str.upper()
    df = df[df['plate_number'] != '']

    # Stations without coordinates cannot be dispatched from
    df = df.dropna(subset=['base_lat', 'base_lng'])
    df = df.drop_duplicates(subset=['plate_number'], keep='first')

    output_cols = ['plate_number', 'base_lat', 'base_lng']
    return df[output_cols].reset_index(drop=True)


def load_and_prepare_fleet(filepath: str, required_columns: list) -> pd.DataFrame:
    """
    Load fleet CSV and preprocess it.
    """
    full_path = os.path.join(os.path.dirname(__file__), "..", filepath)
    if not os.path.exists(full_path):
        raise FileNotFoundError(f"File not found: {full_path}")

    df = pd.read_csv(full_path)

    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns in CSV: {missing}")

    return preprocess_fleet_data(df)


def seed_fleet(session: Session, fleet_df: pd.DataFrame) -> int:
    """Provision every plate not yet in the store. Returns how many were added."""
    existing = set(session.exec(select(Ambulance.plate_number)).all())
    added = []
    for row in fleet_df.itertuples(index=False):
        if row.plate_number in existing:
            continue
        ambulance = Ambulance(
            plate_number=row.plate_number,
            base_lat=float(row.base_lat),
            base_lng=float(row.base_lng),
            current_lat=float(row.base_lat),
            current_lng=float(row.base_lng),
        )
        session.add(ambulance)
        added.append(ambulance)
    session.commit()

    for ambulance in added:
        change_feed.publish("ambulances", "INSERT", ambulance)
    logger.info(f"Seeded {len(added)} ambulances ({len(fleet_df) - len(added)} already present)")
    return len(added)


def get_ambulance(session: Session, ambulance_id: str) -> Ambulance:
    ambulance = session.get(Ambulance, ambulance_id)
    if ambulance is None:
        raise NotFoundError(f"Ambulance {ambulance_id} not found")
    return ambulance


def list_ambulances(session: Session) -> List[Ambulance]:
    return list(session.exec(select(Ambulance).order_by(Ambulance.plate_number)).all())


def driver_ambulance(session: Session, driver_id: str) -> Optional[Ambulance]:
    return session.exec(select(Ambulance).where(Ambulance.driver_id == driver_id)).first()


def has_active_request(session: Session, ambulance_id: str) -> bool:
    statement = (
        select(EmergencyRequest.id)
        .where(EmergencyRequest.assigned_ambulance_id == ambulance_id)
        .where(col(EmergencyRequest.status).in_(ACTIVE_STATUSES))
    )
    return session.exec(statement).first() is not None


def create_ambulance(session: Session, payload: AmbulanceCreate, actor: Actor) -> Ambulance:
    require_admin(actor)
    plate_number = payload.plate_number.strip().upper()
    if payload.driver_id is not None:
        _check_driver_free(session, payload.driver_id)

    # Base station is fixed at provisioning; the unit starts out parked there
    ambulance = Ambulance(
        plate_number=plate_number,
        driver_id=payload.driver_id,
        base_lat=payload.base_lat,
        base_lng=payload.base_lng,
        current_lat=payload.base_lat,
        current_lng=payload.base_lng,
    )
    session.add(ambulance)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(f"Ambulance {plate_number} already exists") from e

    logger.info(f"Provisioned ambulance {plate_number} at ({payload.base_lat}, {payload.base_lng})")
    change_feed.publish("ambulances", "INSERT", ambulance)
    return ambulance


def _check_driver_free(session: Session, driver_id: str, ambulance_id: Optional[str] = None):
    profile = session.exec(select(DriverProfile).where(DriverProfile.user_id == driver_id)).first()
    if profile is None:
        raise NotFoundError(f"Driver {driver_id} not found")
    current = driver_ambulance(session, driver_id)
    if current is not None and current.id != ambulance_id:
        raise ConflictError(f"Driver is already linked to ambulance {current.plate_number}")


def link_driver(session: Session, ambulance_id: str, driver_id: Optional[str], actor: Actor) -> Ambulance:
    """Attach a driver to an ambulance, or detach with ``driver_id=None``."""
    require_admin(actor)
    ambulance = get_ambulance(session, ambulance_id)
    if driver_id is not None:
        _check_driver_free(session, driver_id, ambulance_id)
    if driver_id != ambulance.driver_id and has_active_request(session, ambulance_id):
        raise ConflictError(f"Ambulance {ambulance.plate_number} is on an active trip")

    ambulance.driver_id = driver_id
    ambulance.updated_at = utcnow()
    session.add(ambulance)
    session.commit()
    logger.info(f"Ambulance {ambulance.plate_number} driver set to {driver_id}")
    change_feed.publish("ambulances", "UPDATE", ambulance)
    return ambulance


def set_ambulance_status(session: Session, ambulance_id: str, status: AmbulanceStatus, actor: Actor) -> Ambulance:
    """Admins take a unit offline at any time, or bring an idle one back."""
    require_admin(actor)
    status = AmbulanceStatus(status)
    if status not in (AmbulanceStatus.OFFLINE, AmbulanceStatus.AVAILABLE):
        raise ConflictError(f"Status {status.value} is set by dispatch, not by hand")

    ambulance = get_ambulance(session, ambulance_id)
    if status == AmbulanceStatus.AVAILABLE and has_active_request(session, ambulance_id):
        raise ConflictError(f"Ambulance {ambulance.plate_number} is on an active trip")

    ambulance.status = status.value
    ambulance.updated_at = utcnow()
    session.add(ambulance)
    session.commit()
    logger.info(f"Ambulance {ambulance.plate_number} set {status.value}")
    change_feed.publish("ambulances", "UPDATE", ambulance)
    return ambulance
