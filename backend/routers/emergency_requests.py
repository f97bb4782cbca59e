from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from models.driver_model import Actor
from models.request_model import AssignAmbulance, EmergencyRequestCreate, RequestStatus, StatusUpdate
from routers.deps import get_actor, get_admin
from services import dispatch_service, lifecycle_service, request_service
from services.database import get_session

router = APIRouter(prefix="/api/requests", tags=["Requests"])


@router.post("", status_code=201)
def submit_request(payload: EmergencyRequestCreate, session: Session = Depends(get_session)):
    request = request_service.create_request(session, payload)
    pending = request.status == RequestStatus.PENDING.value
    return {
        "status": request.status,
        "message": request_service.PENDING_MESSAGE if pending else request_service.ASSIGNED_MESSAGE,
        "request": request.model_dump(mode="json"),
    }


@router.get("/track/{tracking_code}")
def track_request(tracking_code: str, session: Session = Depends(get_session)):
    return request_service.tracking_view(session, tracking_code)


@router.get("")
def list_requests(
    limit: int = Query(50, ge=1, le=50),
    session: Session = Depends(get_session),
    admin: Actor = Depends(get_admin),
):
    return request_service.list_requests(session, limit=limit)


@router.get("/{request_id}/candidates")
def request_candidates(request_id: str, session: Session = Depends(get_session), admin: Actor = Depends(get_admin)):
    return dispatch_service.rank_for_request(session, request_id)


@router.post("/{request_id}/assign")
def assign_request(
    request_id: str,
    payload: AssignAmbulance,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return dispatch_service.assign_manually(session, request_id, payload.ambulance_id, actor)


@router.post("/{request_id}/cancel")
def cancel_request(request_id: str, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return lifecycle_service.cancel_request(session, request_id, actor)


@router.post("/{request_id}/status")
def update_status(
    request_id: str,
    payload: StatusUpdate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return lifecycle_service.transition_request(session, request_id, payload.status, actor)
