from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import SQLModel, Field

from models.ambulance_model import utcnow


class Role(str, Enum):
    ADMIN = "admin"
    DRIVER = "driver"


class Actor(BaseModel):
    """Identity handed over by the identity provider for the current call."""
    user_id: str
    role: Role


class DriverProfile(SQLModel, table=True):
    __tablename__ = "profiles"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(unique=True, index=True)
    full_name: str
    phone: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class DriverCreate(BaseModel):
    user_id: str = PydanticField(min_length=1)
    full_name: str = PydanticField(min_length=1, max_length=100)
    phone: Optional[str] = PydanticField(default=None, max_length=20)
