from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field as PydanticField, field_validator
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field

from models.ambulance_model import utcnow


class EmergencyType(str, Enum):
    MEDICAL = "Medical Emergency"
    ACCIDENT = "Accident/Trauma"
    CARDIAC = "Cardiac Emergency"
    RESPIRATORY = "Respiratory Distress"
    PREGNANCY = "Pregnancy/Childbirth"
    BURNS = "Burns"
    POISONING = "Poisoning"
    OTHER = "Other"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    EN_ROUTE = "en_route"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (RequestStatus.ASSIGNED.value, RequestStatus.EN_ROUTE.value, RequestStatus.ARRIVED.value)
TERMINAL_STATUSES = (RequestStatus.COMPLETED.value, RequestStatus.CANCELLED.value)

_REQUEST_STATUSES = ", ".join(f"'{s.value}'" for s in RequestStatus)


class EmergencyRequest(SQLModel, table=True):
    __tablename__ = "emergency_requests"
    __table_args__ = (
        CheckConstraint(f"status IN ({_REQUEST_STATUSES})", name="emergency_requests_status_check"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tracking_code: str = Field(unique=True, index=True)
    requester_name: Optional[str] = None
    requester_phone: str
    emergency_type: str
    description: Optional[str] = None
    location_lat: float
    location_lng: float
    location_address: Optional[str] = None
    status: str = Field(default=RequestStatus.PENDING.value, index=True)
    assigned_ambulance_id: Optional[str] = Field(default=None, foreign_key="ambulances.id", index=True)
    assigned_driver_id: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class Location(BaseModel):
    lat: float = PydanticField(ge=-90, le=90)
    lng: float = PydanticField(ge=-180, le=180)
    address: Optional[str] = PydanticField(default=None, max_length=255)


class EmergencyRequestCreate(BaseModel):
    requester_name: Optional[str] = PydanticField(default=None, max_length=100)
    requester_phone: str = PydanticField(min_length=10, max_length=20)
    emergency_type: EmergencyType
    description: Optional[str] = PydanticField(default=None, max_length=500)
    location: Location

    @field_validator("requester_name", "requester_phone", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class StatusUpdate(BaseModel):
    status: RequestStatus


class AssignAmbulance(BaseModel):
    ambulance_id: str
