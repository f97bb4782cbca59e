from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field as PydanticField
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AmbulanceStatus(str, Enum):
    AVAILABLE = "available"
    EN_ROUTE = "en_route"
    ARRIVED = "arrived"
    BUSY = "busy"
    OFFLINE = "offline"


_AMBULANCE_STATUSES = ", ".join(f"'{s.value}'" for s in AmbulanceStatus)


class Ambulance(SQLModel, table=True):
    __tablename__ = "ambulances"
    __table_args__ = (
        CheckConstraint(f"status IN ({_AMBULANCE_STATUSES})", name="ambulances_status_check"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    plate_number: str = Field(unique=True, index=True)
    driver_id: Optional[str] = Field(default=None, index=True)
    status: str = Field(default=AmbulanceStatus.AVAILABLE.value)
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    base_lat: Optional[float] = None
    base_lng: Optional[float] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class AmbulanceCreate(BaseModel):
    plate_number: str = PydanticField(min_length=1, max_length=20)
    base_lat: float = PydanticField(ge=-90, le=90)
    base_lng: float = PydanticField(ge=-180, le=180)
    driver_id: Optional[str] = None


class DriverLink(BaseModel):
    driver_id: Optional[str] = None


class AmbulanceStatusUpdate(BaseModel):
    status: AmbulanceStatus
