import re

import pytest
from pydantic import ValidationError

from conftest import request_payload
from services import request_service
from services.errors import NotFoundError
from services.request_service import create_request, generate_tracking_code, get_by_tracking_code, tracking_view

TRACKING_CODE = re.compile(r"^SC-[A-Z0-9]{8}$")


def test_tracking_code_format():
    for _ in range(50):
        assert TRACKING_CODE.match(generate_tracking_code())


def test_created_request_gets_code_and_timestamps(session):
    request = create_request(session, request_payload())

    assert TRACKING_CODE.match(request.tracking_code)
    assert request.created_at is not None
    assert request.updated_at is not None
    assert request.completed_at is None
    assert request.emergency_type == "Cardiac Emergency"
    assert request.location_address == "Wuse Market, Abuja"


def test_lookup_is_case_insensitive(session):
    request = create_request(session, request_payload())

    assert get_by_tracking_code(session, request.tracking_code).id == request.id
    assert get_by_tracking_code(session, request.tracking_code.lower()).id == request.id
    assert get_by_tracking_code(session, f"  {request.tracking_code.lower()} ").id == request.id


def test_unknown_tracking_code(session):
    with pytest.raises(NotFoundError):
        get_by_tracking_code(session, "SC-00000000")


def test_code_collision_is_retried(session, monkeypatch):
    first = create_request(session, request_payload())
    codes = iter([first.tracking_code, "SC-FRESH001"])
    monkeypatch.setattr(request_service, "generate_tracking_code", lambda: next(codes))

    second = create_request(session, request_payload())
    assert second.tracking_code == "SC-FRESH001"


def test_tracking_view_while_pending(session):
    request = create_request(session, request_payload())
    view = tracking_view(session, request.tracking_code)

    assert view["request"]["status"] == "pending"
    assert view["message"] == request_service.PENDING_MESSAGE
    assert view["ambulance"] is None


def test_tracking_view_with_ambulance(session, add_ambulance):
    add_ambulance("ABJ-001-SC", 9.0579, 7.4951, driver_id="D1")
    request = create_request(session, request_payload(9.0669, 7.4951))
    view = tracking_view(session, request.tracking_code)

    assert view["message"] is None
    assert view["ambulance"]["plate_number"] == "ABJ-001-SC"
    assert view["ambulance"]["distance_km"] == pytest.approx(1.0, abs=0.01)
    assert view["ambulance"]["eta_minutes"] == 2


@pytest.mark.parametrize("overrides", [
    {"requester_phone": "123"},
    {"requester_phone": "   "},
    {"emergency_type": "Alien Abduction"},
    {"location": {"lat": 91.0, "lng": 7.4}},
    {"location": {"lat": 9.0, "lng": -180.5}},
    {"description": "x" * 501},
])
def test_invalid_submissions_are_rejected(overrides):
    with pytest.raises(ValidationError):
        request_payload(**overrides)


def test_missing_phone_is_rejected():
    with pytest.raises(ValidationError):
        request_payload(requester_phone=None)


def test_optional_text_is_trimmed():
    payload = request_payload(requester_name="  ", description="  Bleeding  ")
    assert payload.requester_name is None
    assert payload.description == "Bleeding"
