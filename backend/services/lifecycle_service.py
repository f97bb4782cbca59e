import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, col

from models.ambulance_model import Ambulance, AmbulanceStatus, utcnow
from models.driver_model import Actor, Role
from models.request_model import EmergencyRequest, RequestStatus, TERMINAL_STATUSES
from services.errors import IllegalTransitionError, NotFoundError, PermissionDeniedError
from services.realtime_service import change_feed

logger = logging.getLogger(__name__)

S = RequestStatus

REQUEST_TRANSITIONS = {
    S.PENDING: {S.ASSIGNED, S.CANCELLED},
    S.ASSIGNED: {S.EN_ROUTE, S.CANCELLED},
    S.EN_ROUTE: {S.ARRIVED, S.CANCELLED},
    S.ARRIVED: {S.COMPLETED, S.CANCELLED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
}

# Trip steps only the assigned driver may take
DRIVER_STEPS = {S.EN_ROUTE, S.ARRIVED, S.COMPLETED}

# Ambulance status that follows each trip step
AMBULANCE_STATUS_FOR = {
    S.EN_ROUTE: AmbulanceStatus.EN_ROUTE,
    S.ARRIVED: AmbulanceStatus.ARRIVED,
    S.COMPLETED: AmbulanceStatus.AVAILABLE,
}


def can_transition(current: str, target: str) -> bool:
    return RequestStatus(target) in REQUEST_TRANSITIONS[RequestStatus(current)]


def check_actor(request: EmergencyRequest, target: RequestStatus, actor: Actor):
    if target in DRIVER_STEPS:
        if actor.role != Role.DRIVER or actor.user_id != request.assigned_driver_id:
            raise PermissionDeniedError("Only the assigned driver can update this trip")
    elif target == S.CANCELLED:
        if actor.role != Role.ADMIN:
            raise PermissionDeniedError("Only an administrator can cancel a request")
    elif target == S.ASSIGNED:
        raise IllegalTransitionError("Assignment needs an ambulance, use the assign action")


def check_transition(request: EmergencyRequest, target: RequestStatus, actor: Actor):
    """Raise unless ``actor`` may move ``request`` to ``target``. Never mutates."""
    if request.status in TERMINAL_STATUSES:
        raise IllegalTransitionError(f"Request {request.tracking_code} is already {request.status}")
    check_actor(request, target, actor)
    if not can_transition(request.status, target):
        raise IllegalTransitionError(f"Cannot move request from {request.status} to {target.value}")


def _write_status(session: Session, request: EmergencyRequest, target: RequestStatus, now: datetime) -> bool:
    """Store ``target`` only if the row still has the status the checks ran against."""
    values = {"status": target.value, "updated_at": now}
    if target == S.COMPLETED:
        values["completed_at"] = now
    statement = (
        update(EmergencyRequest)
        .where(col(EmergencyRequest.id) == request.id)
        .where(col(EmergencyRequest.status) == request.status)
        .values(**values)
    )
    return session.connection().execute(statement).rowcount == 1


def transition_request(
    session: Session,
    request_id: str,
    target: RequestStatus,
    actor: Actor,
    now: Optional[datetime] = None,
) -> EmergencyRequest:
    request = session.get(EmergencyRequest, request_id)
    if request is None:
        raise NotFoundError(f"Request {request_id} not found")
    target = RequestStatus(target)

    try:
        check_transition(request, target, actor)
    except (PermissionDeniedError, IllegalTransitionError) as e:
        logger.warning(
            f"Rejected {request.status} -> {target.value} on {request.tracking_code} "
            f"by {actor.role.value} {actor.user_id}: {e.message}"
        )
        raise

    now = now or utcnow()
    checked_status, code = request.status, request.tracking_code
    if not _write_status(session, request, target, now):
        session.rollback()
        current = session.get(EmergencyRequest, request_id, populate_existing=True)
        logger.warning(
            f"Rejected {checked_status} -> {target.value} on {code}: request is {current.status} now"
        )
        raise IllegalTransitionError(f"Request {code} was updated by someone else, reload it")

    request = session.get(EmergencyRequest, request_id, populate_existing=True)
    ambulance = None
    if request.assigned_ambulance_id is not None:
        ambulance = session.get(Ambulance, request.assigned_ambulance_id, populate_existing=True)

    if ambulance is not None:
        offline = ambulance.status == AmbulanceStatus.OFFLINE.value
        if target == S.CANCELLED:
            # Admins may have taken the unit offline mid-trip; keep that
            if not offline:
                ambulance.status = AmbulanceStatus.AVAILABLE.value
        else:
            if target == S.COMPLETED or not offline:
                ambulance.status = AMBULANCE_STATUS_FOR[target].value
            if target == S.ARRIVED:
                ambulance.current_lat = request.location_lat
                ambulance.current_lng = request.location_lng
        ambulance.updated_at = now
        session.add(ambulance)

    session.commit()
    logger.info(f"Request {request.tracking_code} is now {request.status}")

    change_feed.publish("emergency_requests", "UPDATE", request)
    if ambulance is not None:
        change_feed.publish("ambulances", "UPDATE", ambulance)
    return request


def cancel_request(session: Session, request_id: str, actor: Actor) -> EmergencyRequest:
    return transition_request(session, request_id, S.CANCELLED, actor)
