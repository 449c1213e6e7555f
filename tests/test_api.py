"""
Tests for the HTTP API served by the Gateway.
"""

import pytest
from fastapi.testclient import TestClient

from bffgraph.config import Settings
from bffgraph.gateway import Gateway

ADMIN = {"X-Portal": "admin", "X-Roles": "ACCESS"}


@pytest.fixture
def settings(settings_data) -> Settings:
    return Settings.from_dict(settings_data)


@pytest.fixture
def api(settings):
    gateway = Gateway(settings)
    with TestClient(gateway.app) as client:
        yield client


def test_health(api):
    response = api.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "resources": 1}


def test_list_resources(api):
    response = api.get("/resources")

    assert response.status_code == 200
    (resource,) = response.json()["resources"]
    assert resource["name"] == "GuestReservation"
    assert resource["fields"]["birthDate"] == "date"
    assert resource["fields"]["name"] == "string"


def test_missing_auth_is_401(settings):
    settings.allow_query_auth = False
    with TestClient(Gateway(settings).app) as api:
        assert api.get("/resources/GuestReservation").status_code == 401
        assert api.get("/resources/GuestReservation", headers={"X-Portal": "admin"}).status_code == 401
        assert api.get(
            "/resources/GuestReservation", params={"portal": "admin", "roles": "ACCESS"},
        ).status_code == 401


def test_admin_collection(api):
    response = api.get("/resources/GuestReservation", headers=ADMIN)

    assert response.status_code == 200
    body = response.json()
    assert body["resource"] == "GuestReservation"
    assert body["count"] == 3
    assert body["items"][0]["birthDate"] == "1985-06-15"
    assert body["items"][0]["roomNumber"] == "101"


def test_distributor_collection(api):
    response = api.get("/resources/GuestReservation", headers={"X-Portal": "distributor", "X-Roles": "ACCESS"})

    assert response.status_code == 200
    assert all(set(item) == {"id", "reservationId", "name"} for item in response.json()["items"])


def test_query_auth(api):
    response = api.get("/resources/GuestReservation", params={"portal": "distributor", "roles": "ACCESS"})

    assert response.status_code == 200
    assert response.json()["count"] == 3
    assert set(response.json()["items"][0]) == {"id", "reservationId", "name"}


def test_query_filters_reach_primary_service(api):
    response = api.get("/resources/GuestReservation", params={"countryCode": "US"}, headers=ADMIN)

    assert response.status_code == 200
    assert [item["name"] for item in response.json()["items"]] == ["John Doe"]


def test_item(api):
    response = api.get("/resources/GuestReservation/G001", headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["checkInDate"] == "2025-05-01"
    assert response.json()["email"] == "john@example.com"


def test_item_not_found(api):
    response = api.get("/resources/GuestReservation/G999", headers=ADMIN)

    assert response.status_code == 404
    assert "not found" in response.json()["detail"]["error"]


def test_item_without_visible_fields_is_403(api):
    response = api.get("/resources/GuestReservation/G001", headers={"X-Portal": "partner", "X-Roles": "ACCESS"})

    assert response.status_code == 403


def test_collection_without_visible_fields_is_empty(api):
    response = api.get("/resources/GuestReservation", headers={"X-Portal": "partner", "X-Roles": "ACCESS"})

    assert response.status_code == 200
    assert response.json() == {"resource": "GuestReservation", "items": [], "count": 0}


def test_unknown_resource_is_404(api):
    assert api.get("/resources/Invoice", headers=ADMIN).status_code == 404
    assert api.get("/resources/Invoice/1", headers=ADMIN).status_code == 404


def test_primary_failure_is_502(settings, make_client):
    gateway = Gateway(settings, client=make_client(fail=("guest-service",)))

    with TestClient(gateway.app) as api:
        response = api.get("/resources/GuestReservation", headers=ADMIN)

    assert response.status_code == 502
    assert response.json()["detail"]["error"] == "Service error: guest-service"


def test_secondary_failure_still_answers(settings, make_client):
    gateway = Gateway(settings, client=make_client(fail=("reservation-service",)))

    with TestClient(gateway.app) as api:
        response = api.get("/resources/GuestReservation/G002", headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["name"] == "Jane Smith"
    assert "checkInDate" not in response.json()


def test_configuration_error_is_500(settings_data):
    del settings_data["catalog"]["entities"]["reservation-service"]["Reservation"]["route"]
    gateway = Gateway(Settings.from_dict(settings_data))

    with TestClient(gateway.app) as api:
        response = api.get("/resources/GuestReservation", headers=ADMIN)

    assert response.status_code == 500
    assert response.json()["detail"]["error"] == "Configuration error"


def test_camel_case_output(settings_data):
    settings_data["camel_case"] = True
    settings_data["resources"]["GuestCard"] = {
        "primary": "guest-service:Guest",
        "fields": {
            "id": {"access": {"admin": ["ACCESS"]}, "source": "guest-service:Guest.id"},
            "full_name": {"access": {"admin": ["ACCESS"]}, "source": "guest-service:Guest.fullName"},
        },
    }
    gateway = Gateway(Settings.from_dict(settings_data))

    with TestClient(gateway.app) as api:
        response = api.get("/resources/GuestCard/G003", headers=ADMIN)

    assert response.status_code == 200
    assert response.json() == {"id": "G003", "fullName": "Bob Johnson"}
