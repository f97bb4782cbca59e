from fastapi import APIRouter, Depends
from sqlmodel import Session

from models.driver_model import Actor, DriverCreate
from routers.deps import get_actor, get_driver
from services import driver_service, fleet_service, request_service
from services.database import get_session

router = APIRouter(prefix="/api/drivers", tags=["Drivers"])


@router.post("", status_code=201)
def register_driver(payload: DriverCreate, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return driver_service.register_driver(session, payload, actor)


@router.get("")
def list_drivers(session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return driver_service.list_drivers(session, actor)


@router.get("/me/ambulance")
def my_ambulance(session: Session = Depends(get_session), driver: Actor = Depends(get_driver)):
    return fleet_service.driver_ambulance(session, driver.user_id)


@router.get("/me/requests")
def my_requests(session: Session = Depends(get_session), driver: Actor = Depends(get_driver)):
    return request_service.list_driver_requests(session, driver.user_id)


@router.get("/me/history")
def my_history(session: Session = Depends(get_session), driver: Actor = Depends(get_driver)):
    return request_service.driver_history(session, driver.user_id)
