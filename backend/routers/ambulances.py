from fastapi import APIRouter, Depends
from sqlmodel import Session

from models.ambulance_model import AmbulanceCreate, AmbulanceStatusUpdate, DriverLink
from models.driver_model import Actor
from routers.deps import get_actor
from services import fleet_service
from services.database import get_session

router = APIRouter(prefix="/api/ambulances", tags=["Ambulances"])


@router.get("")
def list_ambulances(session: Session = Depends(get_session)):
    return fleet_service.list_ambulances(session)


@router.post("", status_code=201)
def create_ambulance(payload: AmbulanceCreate, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return fleet_service.create_ambulance(session, payload, actor)


@router.put("/{ambulance_id}/driver")
def link_driver(
    ambulance_id: str,
    payload: DriverLink,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return fleet_service.link_driver(session, ambulance_id, payload.driver_id, actor)


@router.put("/{ambulance_id}/status")
def set_status(
    ambulance_id: str,
    payload: AmbulanceStatusUpdate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return fleet_service.set_ambulance_status(session, ambulance_id, payload.status, actor)
