import pandas as pd
from sqlmodel import Session, func, select

from models.ambulance_model import Ambulance, AmbulanceStatus
from models.driver_model import DriverProfile
from models.request_model import ACTIVE_STATUSES, EmergencyRequest, RequestStatus


def dashboard_stats(session: Session) -> dict:
    """Counters for the admin dashboard cards."""
    request_status = pd.Series(session.exec(select(EmergencyRequest.status)).all(), dtype=object)
    ambulance_status = pd.Series(session.exec(select(Ambulance.status)).all(), dtype=object)
    drivers = session.exec(select(func.count()).select_from(DriverProfile)).one()

    return {
        "pending": int((request_status == RequestStatus.PENDING.value).sum()),
        "active": int(request_status.isin(ACTIVE_STATUSES).sum()),
        "available": int((ambulance_status == AmbulanceStatus.AVAILABLE.value).sum()),
        "drivers": int(drivers),
        "requests_by_status": {str(k): int(v) for k, v in request_status.value_counts().items()},
    }
