import pytest
from fastapi.testclient import TestClient

from app import app
from models.ambulance_model import Ambulance
from models.driver_model import Actor, DriverProfile, Role
from models.request_model import EmergencyRequestCreate
from services.database import get_session, init_db, make_engine, open_session
from services.realtime_service import change_feed

ADMIN = Actor(user_id="admin-1", role=Role.ADMIN)


def driver(user_id: str) -> Actor:
    return Actor(user_id=user_id, role=Role.DRIVER)


def request_payload(lat=9.081, lng=7.401, **overrides) -> EmergencyRequestCreate:
    data = {
        "requester_name": "Amina Yusuf",
        "requester_phone": "+2348020000001",
        "emergency_type": "Cardiac Emergency",
        "description": "Collapsed at the market",
        "location": {"lat": lat, "lng": lng, "address": "Wuse Market, Abuja"},
    }
    data.update(overrides)
    return EmergencyRequestCreate(**data)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'dispatch.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with open_session(engine) as session:
        yield session


@pytest.fixture(autouse=True)
def reset_change_feed():
    yield
    change_feed.clear()


@pytest.fixture
def add_ambulance(session):
    def _add(plate, lat=None, lng=None, driver_id=None, status="available"):
        ambulance = Ambulance(
            plate_number=plate,
            driver_id=driver_id,
            status=status,
            current_lat=lat,
            current_lng=lng,
            base_lat=lat,
            base_lng=lng,
        )
        session.add(ambulance)
        session.commit()
        return ambulance
    return _add


@pytest.fixture
def add_driver(session):
    def _add(user_id, full_name="Chukwu Emmanuel", phone="+234802000001"):
        profile = DriverProfile(user_id=user_id, full_name=full_name, phone=phone)
        session.add(profile)
        session.commit()
        return profile
    return _add


@pytest.fixture
def client(engine):
    def override_session():
        with open_session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anyio_backend():
    return "asyncio"
