import pandas as pd
import pytest

from conftest import ADMIN, driver, request_payload
from models.ambulance_model import AmbulanceCreate, AmbulanceStatus
from services import fleet_service
from services.errors import ConflictError, NotFoundError, PermissionDeniedError
from services.lifecycle_service import transition_request
from services.request_service import create_request


def test_preprocess_normalises_plates_and_drops_bad_rows():
    raw = pd.DataFrame({
        "Plate": [" abj-001-sc", "ABJ-002-SC", "abj-001-sc", "ABJ-003-SC"],
        "Lat": [9.07, 9.05, 9.99, None],
        "Long": [7.39, 7.49, 7.99, 7.5],
    })
    fleet = fleet_service.preprocess_fleet_data(raw)

    assert list(fleet.columns) == ["plate_number", "base_lat", "base_lng"]
    assert list(fleet["plate_number"]) == ["ABJ-001-SC", "ABJ-002-SC"]
    assert fleet.loc[0, "base_lat"] == 9.07


def test_bundled_fleet_csv_loads():
    fleet = fleet_service.load_and_prepare_fleet("data/ambulances.csv", ["Plate", "Lat", "Long"])
    assert len(fleet) == 5
    assert "ABJ-003-SC" in set(fleet["plate_number"])


def test_missing_columns(tmp_path):
    path = tmp_path / "fleet.csv"
    path.write_text("Plate,Lat\nABJ-9,9.0\n")
    with pytest.raises(ValueError):
        fleet_service.load_and_prepare_fleet(str(path), ["Plate", "Lat", "Long"])


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        fleet_service.load_and_prepare_fleet(str(tmp_path / "nope.csv"), ["Plate"])


def test_seed_is_idempotent(session):
    fleet = fleet_service.load_and_prepare_fleet("data/ambulances.csv", ["Plate", "Lat", "Long"])

    assert fleet_service.seed_fleet(session, fleet) == 5
    assert fleet_service.seed_fleet(session, fleet) == 0

    ambulances = fleet_service.list_ambulances(session)
    assert [a.plate_number for a in ambulances] == sorted(a.plate_number for a in ambulances)
    station = next(a for a in ambulances if a.plate_number == "ABJ-003-SC")
    assert (station.base_lat, station.base_lng) == (9.0820, 7.5350)
    assert (station.current_lat, station.current_lng) == (9.0820, 7.5350)
    assert station.driver_id is None


def test_create_ambulance_parks_at_base(session):
    ambulance = fleet_service.create_ambulance(
        session, AmbulanceCreate(plate_number="abj-010-sc", base_lat=9.1, base_lng=7.4), ADMIN
    )
    assert ambulance.plate_number == "ABJ-010-SC"
    assert ambulance.status == "available"
    assert (ambulance.current_lat, ambulance.current_lng) == (9.1, 7.4)


def test_duplicate_plate(session):
    payload = AmbulanceCreate(plate_number="ABJ-010-SC", base_lat=9.1, base_lng=7.4)
    fleet_service.create_ambulance(session, payload, ADMIN)
    with pytest.raises(ConflictError):
        fleet_service.create_ambulance(session, payload, ADMIN)


def test_only_admins_provision(session):
    payload = AmbulanceCreate(plate_number="ABJ-010-SC", base_lat=9.1, base_lng=7.4)
    with pytest.raises(PermissionDeniedError):
        fleet_service.create_ambulance(session, payload, driver("D1"))


def test_link_driver_once(session, add_ambulance, add_driver):
    add_driver("D1")
    first = add_ambulance("ABJ-001-SC", 9.08, 7.40)
    second = add_ambulance("ABJ-002-SC", 9.00, 7.50)

    assert fleet_service.link_driver(session, first.id, "D1", ADMIN).driver_id == "D1"
    with pytest.raises(ConflictError):
        fleet_service.link_driver(session, second.id, "D1", ADMIN)
    assert fleet_service.driver_ambulance(session, "D1").id == first.id


def test_link_unknown_driver(session, add_ambulance):
    ambulance = add_ambulance("ABJ-001-SC", 9.08, 7.40)
    with pytest.raises(NotFoundError):
        fleet_service.link_driver(session, ambulance.id, "ghost", ADMIN)


def test_driver_cannot_change_during_trip(session, add_ambulance, add_driver):
    add_driver("D1")
    add_driver("D2")
    ambulance = add_ambulance("ABJ-001-SC", 9.08, 7.40, driver_id="D1")
    create_request(session, request_payload())

    with pytest.raises(ConflictError):
        fleet_service.link_driver(session, ambulance.id, "D2", ADMIN)
    with pytest.raises(ConflictError):
        fleet_service.link_driver(session, ambulance.id, None, ADMIN)


def test_offline_and_back(session, add_ambulance):
    ambulance = add_ambulance("ABJ-001-SC", 9.08, 7.40, driver_id="D1")

    assert fleet_service.set_ambulance_status(session, ambulance.id, AmbulanceStatus.OFFLINE, ADMIN).status == "offline"
    # Offline units are not dispatched
    assert create_request(session, request_payload()).status == "pending"
    assert fleet_service.set_ambulance_status(session, ambulance.id, AmbulanceStatus.AVAILABLE, ADMIN).status == "available"


def test_cannot_free_ambulance_on_trip(session, add_ambulance):
    ambulance = add_ambulance("ABJ-001-SC", 9.08, 7.40, driver_id="D1")
    request = create_request(session, request_payload())
    transition_request(session, request.id, "en_route", driver("D1"))

    with pytest.raises(ConflictError):
        fleet_service.set_ambulance_status(session, ambulance.id, AmbulanceStatus.AVAILABLE, ADMIN)
    # Offline is allowed at any time
    assert fleet_service.set_ambulance_status(session, ambulance.id, AmbulanceStatus.OFFLINE, ADMIN).status == "offline"


def test_dispatch_statuses_are_not_set_by_hand(session, add_ambulance):
    ambulance = add_ambulance("ABJ-001-SC", 9.08, 7.40, driver_id="D1")
    with pytest.raises(ConflictError):
        fleet_service.set_ambulance_status(session, ambulance.id, AmbulanceStatus.BUSY, ADMIN)
