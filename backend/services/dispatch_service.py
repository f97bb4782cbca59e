import logging
from typing import List, Optional, Sequence

import pandas as pd
from sqlalchemy import update
from sqlmodel import Session, col, select

import config
from models.ambulance_model import Ambulance, AmbulanceStatus, utcnow
from models.driver_model import Actor, Role
from models.request_model import EmergencyRequest, RequestStatus
from services.errors import ConflictError, IllegalTransitionError, NotFoundError, PermissionDeniedError
from services.geo_service import haversine_distance
from services.realtime_service import change_feed

logger = logging.getLogger(__name__)


def candidates_frame(ambulances: Sequence[Ambulance]) -> pd.DataFrame:
    """One row per ambulance with its effective position; index is the position in ``ambulances``."""
    df = pd.DataFrame(
        [
            {
                "id": a.id,
                "plate_number": a.plate_number,
                "driver_id": a.driver_id,
                "status": a.status,
                "lat": a.current_lat,
                "lng": a.current_lng,
            }
            for a in ambulances
        ],
        columns=["id", "plate_number", "driver_id", "status", "lat", "lng"],
    )
    # Ambulances that never reported a position count as standing at the default point
    df["lat"] = pd.to_numeric(df["lat"]).fillna(config.DEFAULT_LAT)
    df["lng"] = pd.to_numeric(df["lng"]).fillna(config.DEFAULT_LNG)
    return df


def rank_candidates(ambulances: Sequence[Ambulance], lat: float, lng: float) -> pd.DataFrame:
    """Available ambulances with a driver, nearest first. Equal distances keep input order."""
    df = candidates_frame(ambulances)
    qualified = df[(df["status"] == AmbulanceStatus.AVAILABLE.value) & df["driver_id"].notna()].copy()
    if qualified.empty:
        qualified["distance_km"] = pd.Series(dtype=float)
        return qualified

    qualified["distance_km"] = haversine_distance(lat, lng, qualified["lat"], qualified["lng"])
    return qualified.sort_values("distance_km", kind="mergesort")


def select_nearest_ambulance(ambulances: Sequence[Ambulance], lat: float, lng: float) -> Optional[Ambulance]:
    ranked = rank_candidates(ambulances, lat, lng)
    if ranked.empty:
        return None
    return ambulances[ranked.index[0]]


def load_candidate_pool(session: Session, exclude: Sequence[str] = ()) -> List[Ambulance]:
    statement = (
        select(Ambulance)
        .where(Ambulance.status == AmbulanceStatus.AVAILABLE.value)
        .where(col(Ambulance.driver_id).is_not(None))
        .order_by(Ambulance.plate_number)
    )
    if exclude:
        statement = statement.where(col(Ambulance.id).not_in(list(exclude)))
    return list(session.exec(statement).all())


def claim_ambulance(session: Session, ambulance_id: str) -> bool:
    """Mark the ambulance busy only if it is still available with a driver.

    The conditional update is the claim: of several concurrent callers at most
    one sees a changed row.
    """
    statement = (
        update(Ambulance)
        .where(col(Ambulance.id) == ambulance_id)
        .where(col(Ambulance.status) == AmbulanceStatus.AVAILABLE.value)
        .where(col(Ambulance.driver_id).is_not(None))
        .values(status=AmbulanceStatus.BUSY.value, updated_at=utcnow())
    )
    result = session.connection().execute(statement)
    return result.rowcount == 1


def _link(request: EmergencyRequest, ambulance: Ambulance):
    request.assigned_ambulance_id = ambulance.id
    request.assigned_driver_id = ambulance.driver_id
    request.status = RequestStatus.ASSIGNED.value
    request.updated_at = utcnow()


def auto_dispatch(session: Session, request: EmergencyRequest) -> Optional[Ambulance]:
    """Assign the nearest available ambulance to a new pending request.

    Runs inside the caller's transaction; the caller commits. Returns the
    claimed ambulance, or None when the request stays pending.
    """
    if request.status != RequestStatus.PENDING.value or request.assigned_ambulance_id is not None:
        return None

    lost = []
    for attempt in range(config.MAX_CLAIM_ATTEMPTS):
        pool = load_candidate_pool(session, exclude=lost)
        ranked = rank_candidates(pool, request.location_lat, request.location_lng)
        if ranked.empty:
            break

        best = pool[ranked.index[0]]
        distance_km = round(float(ranked["distance_km"].iloc[0]), 2)
        if not claim_ambulance(session, best.id):
            logger.info(f"Lost claim on ambulance {best.plate_number} (attempt {attempt + 1}), retrying")
            lost.append(best.id)
            continue

        ambulance = session.get(Ambulance, best.id, populate_existing=True)
        _link(request, ambulance)
        logger.info(
            f"Dispatched ambulance {ambulance.plate_number} | "
            f"Distance : {distance_km} km | "
            f"Patient Location : ({request.location_lat}, {request.location_lng})"
        )
        return ambulance

    logger.warning(
        f"No available ambulance for request at ({request.location_lat}, {request.location_lng}); "
        f"request stays pending"
    )
    return None


def _link_if_pending(session: Session, request_id: str, ambulance: Ambulance) -> bool:
    """Write the assignment only if the request is still pending and unassigned."""
    statement = (
        update(EmergencyRequest)
        .where(col(EmergencyRequest.id) == request_id)
        .where(col(EmergencyRequest.status) == RequestStatus.PENDING.value)
        .where(col(EmergencyRequest.assigned_ambulance_id).is_(None))
        .values(
            assigned_ambulance_id=ambulance.id,
            assigned_driver_id=ambulance.driver_id,
            status=RequestStatus.ASSIGNED.value,
            updated_at=utcnow(),
        )
    )
    return session.connection().execute(statement).rowcount == 1


def assign_manually(session: Session, request_id: str, ambulance_id: str, actor: Actor) -> EmergencyRequest:
    """Admin picks the ambulance; no distance comparison, same claim and linking."""
    if actor.role != Role.ADMIN:
        raise PermissionDeniedError("Only an administrator can assign ambulances")

    request = session.get(EmergencyRequest, request_id)
    if request is None:
        raise NotFoundError(f"Request {request_id} not found")
    if request.status != RequestStatus.PENDING.value:
        raise IllegalTransitionError(f"Cannot assign a request that is {request.status}")

    ambulance = session.get(Ambulance, ambulance_id)
    if ambulance is None:
        raise NotFoundError(f"Ambulance {ambulance_id} not found")
    if ambulance.driver_id is None:
        raise ConflictError("Ambulance has no assigned driver")
    if not claim_ambulance(session, ambulance.id):
        session.rollback()
        raise ConflictError(f"Ambulance {ambulance.plate_number} is not available")

    ambulance = session.get(Ambulance, ambulance_id, populate_existing=True)
    if not _link_if_pending(session, request_id, ambulance):
        # Releases the claim taken above
        session.rollback()
        logger.warning(f"Request {request_id} was assigned or closed meanwhile, released {ambulance.plate_number}")
        raise ConflictError("Request is no longer pending")

    request = session.get(EmergencyRequest, request_id, populate_existing=True)
    session.commit()
    logger.info(f"Manually assigned ambulance {ambulance.plate_number} to request {request.tracking_code}")

    change_feed.publish("ambulances", "UPDATE", ambulance)
    change_feed.publish("emergency_requests", "UPDATE", request)
    return request


def rank_for_request(session: Session, request_id: str) -> List[dict]:
    """Candidate list an admin sees when assigning by hand."""
    request = session.get(EmergencyRequest, request_id)
    if request is None:
        raise NotFoundError(f"Request {request_id} not found")

    ranked = rank_candidates(load_candidate_pool(session), request.location_lat, request.location_lng)
    ranked["distance_km"] = ranked["distance_km"].round(2)
    return ranked[["id", "plate_number", "driver_id", "lat", "lng", "distance_km"]].to_dict(orient="records")
