import logging
import secrets
import string
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

import config
from models.ambulance_model import Ambulance
from models.request_model import (
    ACTIVE_STATUSES,
    EmergencyRequest,
    EmergencyRequestCreate,
    RequestStatus,
)
from services.dispatch_service import auto_dispatch
from services.errors import ConflictError, NotFoundError
from services.geo_service import estimate_eta_minutes, haversine_distance
from services.realtime_service import change_feed

logger = logging.getLogger(__name__)

TRACKING_PREFIX = "SC-"
TRACKING_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_ATTEMPTS = 5

PENDING_MESSAGE = "Request pending, searching for an available ambulance"
ASSIGNED_MESSAGE = "Ambulance assigned"


def generate_tracking_code() -> str:
    return TRACKING_PREFIX + "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(8))


def normalize_tracking_code(code: str) -> str:
    return code.strip().upper()


def _unused_tracking_code(session: Session) -> str:
    for _ in range(TRACKING_ATTEMPTS):
        code = generate_tracking_code()
        taken = session.exec(select(EmergencyRequest.id).where(EmergencyRequest.tracking_code == code)).first()
        if taken is None:
            return code
    raise ConflictError("Could not allocate a tracking code, please retry")


def create_request(session: Session, payload: EmergencyRequestCreate) -> EmergencyRequest:
    """Store a citizen's request and try to dispatch it in the same transaction."""
    request = EmergencyRequest(
        tracking_code=_unused_tracking_code(session),
        requester_name=payload.requester_name,
        requester_phone=payload.requester_phone,
        emergency_type=payload.emergency_type.value,
        description=payload.description,
        location_lat=payload.location.lat,
        location_lng=payload.location.lng,
        location_address=payload.location.address,
        status=RequestStatus.PENDING.value,
    )
    ambulance = auto_dispatch(session, request)
    session.add(request)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.error(f"Could not store request: {e}")
        raise ConflictError("Request could not be stored, please retry") from e

    logger.info(f"Created request {request.tracking_code} ({request.emergency_type}) status={request.status}")
    if ambulance is not None:
        change_feed.publish("ambulances", "UPDATE", ambulance)
    change_feed.publish("emergency_requests", "INSERT", request)
    return request


def get_request(session: Session, request_id: str) -> EmergencyRequest:
    request = session.get(EmergencyRequest, request_id)
    if request is None:
        raise NotFoundError(f"Request {request_id} not found")
    return request


def get_by_tracking_code(session: Session, code: str) -> EmergencyRequest:
    code = normalize_tracking_code(code)
    request = session.exec(select(EmergencyRequest).where(EmergencyRequest.tracking_code == code)).first()
    if request is None:
        raise NotFoundError(f"No request with tracking code {code}")
    return request


def tracking_view(session: Session, code: str) -> dict:
    """What a citizen sees on the tracking page."""
    request = get_by_tracking_code(session, code)
    view = {
        "request": request.model_dump(mode="json"),
        "message": PENDING_MESSAGE if request.status == RequestStatus.PENDING.value else None,
        "ambulance": None,
    }
    if request.assigned_ambulance_id is None:
        return view

    ambulance = session.get(Ambulance, request.assigned_ambulance_id)
    if ambulance is None:
        return view
    info = {
        "plate_number": ambulance.plate_number,
        "current_lat": ambulance.current_lat,
        "current_lng": ambulance.current_lng,
        "distance_km": None,
        "eta_minutes": None,
    }
    if ambulance.current_lat is not None and ambulance.current_lng is not None:
        distance_km = float(haversine_distance(
            ambulance.current_lat, ambulance.current_lng, request.location_lat, request.location_lng
        ))
        info["distance_km"] = round(distance_km, 2)
        info["eta_minutes"] = estimate_eta_minutes(distance_km, config.AVERAGE_SPEED_KMH)
    view["ambulance"] = info
    return view


def list_requests(session: Session, limit: int = 50) -> List[EmergencyRequest]:
    statement = select(EmergencyRequest).order_by(col(EmergencyRequest.created_at).desc()).limit(limit)
    return list(session.exec(statement).all())


def list_driver_requests(session: Session, driver_id: str, statuses: Optional[List[str]] = None) -> List[EmergencyRequest]:
    statuses = statuses or list(ACTIVE_STATUSES)
    statement = (
        select(EmergencyRequest)
        .where(EmergencyRequest.assigned_driver_id == driver_id)
        .where(col(EmergencyRequest.status).in_(statuses))
        .order_by(col(EmergencyRequest.created_at).desc())
    )
    return list(session.exec(statement).all())


def driver_history(session: Session, driver_id: str, limit: int = 50) -> List[EmergencyRequest]:
    statement = (
        select(EmergencyRequest)
        .where(EmergencyRequest.assigned_driver_id == driver_id)
        .where(EmergencyRequest.status == RequestStatus.COMPLETED.value)
        .order_by(col(EmergencyRequest.completed_at).desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())
