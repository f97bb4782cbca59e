from fastapi import APIRouter, Depends
from sqlmodel import Session

from models.driver_model import Actor
from routers.deps import get_admin
from services.database import get_session
from services.stats_service import dashboard_stats

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/stats")
def stats(session: Session = Depends(get_session), admin: Actor = Depends(get_admin)):
    return dashboard_stats(session)
