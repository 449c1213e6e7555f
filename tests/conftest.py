"""
Shared fixtures: a guest/reservation catalog, the GuestReservation resource
and an in-memory client that records every fetch.
"""

import asyncio
import copy
from typing import Any, Optional

import pytest

from bffgraph.core.catalog import SourceCatalog
from bffgraph.core.errors import ServiceError
from bffgraph.core.registry import ResourceRegistry
from bffgraph.runtime.context import AuthContext
from bffgraph.runtime.engine import AggregationEngine
from bffgraph.runtime.static_client import StaticEntityClient


ALL_PORTALS = {"admin": ["ACCESS"], "workspace": ["ACCESS"], "distributor": ["ACCESS"], "selfcheckin": ["ACCESS"]}

CATALOG_CONFIG = {
    "default_tier": "normal",
    "services": {
        "guest-service": "https://guest-service.domain",
        "reservation-service": "https://reservation-service.domain",
    },
    "entities": {
        "guest-service": {
            "Guest": {
                "route": "/api/guests",
                "fields": {
                    "id": "ids",
                    "fullName": "mini",
                    "email": "mini",
                    "countryCode": ["mini", "full"],
                    "dateOfBirth": "normal",
                    "documentId": "normal",
                    "reservationId": "mini",
                    "address": "full",
                },
            },
        },
        "reservation-service": {
            "Reservation": {
                "route": "/api/reservations",
                "fields": {
                    "id": "ids",
                    "arrivalDate": "mini",
                    "departureDate": "mini",
                    "status": "mini",
                    "roomNumber": "normal",
                    "specialRequests": "full",
                },
            },
        },
    },
}

RESOURCE_CONFIG = {
    "GuestReservation": {
        "primary": "guest-service:Guest",
        "fields": {
            "id": {"access": ALL_PORTALS, "source": "guest-service:Guest.id"},
            "reservationId": {
                "access": ALL_PORTALS,
                "relationship": {
                    "source": "guest-service:Guest.reservationId",
                    "target": "reservation-service:Reservation.id",
                },
            },
            "name": {
                "access": {"admin": ["ACCESS"], "distributor": ["ACCESS"]},
                "source": "guest-service:Guest.fullName",
            },
            "email": {"access": {"admin": ["ACCESS"]}, "source": "guest-service:Guest.email"},
            "nationality": {"access": {"admin": ["ACCESS"]}, "source": "guest-service:Guest.countryCode"},
            "birthDate": {
                "type": "date",
                "access": {"admin": ["ACCESS"]},
                "source": "guest-service:Guest.dateOfBirth",
            },
            "checkInDate": {
                "type": "date",
                "access": {"admin": ["ACCESS"]},
                "source": "reservation-service:Reservation.arrivalDate",
            },
            "checkOutDate": {
                "type": "date",
                "access": {"admin": ["ACCESS"]},
                "source": "reservation-service:Reservation.departureDate",
            },
            "roomNumber": {
                "access": {"admin": ["ACCESS"], "distributor": [""], "selfcheckin": ["ACCESS"]},
                "source": "reservation-service:Reservation.roomNumber",
            },
        },
    },
}

GUESTS = [
    {"id": "G001", "fullName": "John Doe", "email": "john@example.com", "countryCode": "US",
     "dateOfBirth": "1985-06-15", "documentId": "US123456789", "reservationId": "R101",
     "address": "123 Main St, New York, NY 10001"},
    {"id": "G002", "fullName": "Jane Smith", "email": "jane@example.com", "countryCode": "UK",
     "dateOfBirth": "1990-03-22", "documentId": "UK987654321", "reservationId": "R102",
     "address": "456 Oak Ave, London, UK SW1A 1AA"},
    {"id": "G003", "fullName": "Bob Johnson", "email": "bob@example.com", "countryCode": "CA",
     "dateOfBirth": "1978-11-30", "documentId": "CA555555555", "reservationId": "R103",
     "address": "789 Pine Rd, Toronto, ON M5V 2T6"},
]

RESERVATIONS = [
    {"id": "R101", "arrivalDate": "2025-05-01", "departureDate": "2025-05-05", "status": "confirmed",
     "roomNumber": "101", "specialRequests": "Early check-in requested"},
    {"id": "R102", "arrivalDate": "2025-05-10", "departureDate": "2025-05-15", "status": "confirmed",
     "roomNumber": "205", "specialRequests": "Non-smoking room, high floor"},
    {"id": "R103", "arrivalDate": "2025-06-01", "departureDate": "2025-06-07", "status": "pending",
     "roomNumber": "310", "specialRequests": "Extra pillows, late check-out"},
    {"id": "R104", "arrivalDate": "2025-07-15", "departureDate": "2025-07-20", "status": "pending",
     "roomNumber": "402", "specialRequests": "Airport shuttle service"},
]

STATIC_DATA = {
    "guest-service": {"Guest": GUESTS},
    "reservation-service": {"Reservation": RESERVATIONS},
}


class RecordingClient:
    """
    StaticEntityClient wrapper recording every fetch.

    ``fail`` services raise ServiceError, ``delay`` services sleep before
    answering, so timeouts and concurrency can be observed.
    """

    def __init__(
        self,
        catalog: SourceCatalog,
        data: dict[str, Any],
        fail: tuple[str, ...] = (),
        delay: Optional[dict[str, float]] = None,
    ):
        self.inner = StaticEntityClient(catalog, data)
        self.fail = fail
        self.delay = delay or {}
        self.calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, service, endpoint, tier, filters=None, id=None):
        self.calls.append({
            "service": service,
            "endpoint": endpoint,
            "tier": tier,
            "filters": list(filters or []),
            "id": id,
        })
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if service in self.delay:
                await asyncio.sleep(self.delay[service])
            if service in self.fail:
                raise ServiceError(service=service, status_code=500, message="Internal Server Error")
            return await self.inner.fetch(service, endpoint, tier, filters=filters, id=id)
        finally:
            self.in_flight -= 1

    def services_called(self) -> list[str]:
        return [call["service"] for call in self.calls]

    async def close(self):
        pass


@pytest.fixture
def catalog_config() -> dict:
    return copy.deepcopy(CATALOG_CONFIG)


@pytest.fixture
def resource_config() -> dict:
    return copy.deepcopy(RESOURCE_CONFIG)


@pytest.fixture
def static_data() -> dict:
    return copy.deepcopy(STATIC_DATA)


@pytest.fixture
def settings_data(catalog_config, resource_config, static_data) -> dict:
    """Full bffgraph.yaml document as a dict."""
    return {
        "bff_name": "hotel-bff",
        "fetch_timeout": 2,
        "allow_query_auth": True,
        "catalog": catalog_config,
        "resources": resource_config,
        "static_data": static_data,
    }


@pytest.fixture
def catalog(catalog_config) -> SourceCatalog:
    return SourceCatalog.from_dict(catalog_config)


@pytest.fixture
def registry(resource_config) -> ResourceRegistry:
    return ResourceRegistry.from_dict(resource_config)


@pytest.fixture
def schema(registry):
    return registry.get("GuestReservation")


@pytest.fixture
def make_client(catalog, static_data):
    def _make(**kwargs) -> RecordingClient:
        return RecordingClient(
            kwargs.pop("catalog", catalog),
            kwargs.pop("data", static_data),
            **kwargs,
        )
    return _make


@pytest.fixture
def client(make_client) -> RecordingClient:
    return make_client()


@pytest.fixture
def engine(registry, catalog, client) -> AggregationEngine:
    return AggregationEngine(registry, catalog, client, fetch_timeout=1.0)


@pytest.fixture
def admin() -> AuthContext:
    return AuthContext.create("admin", ["ACCESS"])


@pytest.fixture
def distributor() -> AuthContext:
    return AuthContext.create("distributor", ["ACCESS"])


@pytest.fixture
def selfcheckin() -> AuthContext:
    return AuthContext.create("selfcheckin", ["ACCESS"])



# =============================================================================
# Three-service variant: rooms (two hops away) and identity documents
# =============================================================================

STAY_RESOURCE_CONFIG = {
    "primary": "guest-service:Guest",
    "fields": {
        "id": {"access": {"admin": ["ACCESS"]}, "source": "guest-service:Guest.id"},
        "reservationId": {
            "access": {"admin": ["ACCESS"]},
            "relationship": {
                "source": "guest-service:Guest.reservationId",
                "target": "reservation-service:Reservation.id",
            },
        },
        "checkInDate": {
            "type": "date",
            "access": {"admin": ["ACCESS"]},
            "source": "reservation-service:Reservation.arrivalDate",
        },
        "room": {
            "access": {"admin": ["ACCESS"]},
            "relationship": {
                "source": "reservation-service:Reservation.roomNumber",
                "target": "reservation-service:Room.number",
            },
        },
        "floor": {"type": "int", "access": {"admin": ["ACCESS"]}, "source": "reservation-service:Room.floor"},
        "document": {
            "access": {"admin": ["ACCESS"]},
            "relationship": {
                "source": "guest-service:Guest.documentId",
                "target": "document-service:Document.number",
            },
        },
        "issuer": {"access": {"admin": ["ACCESS"]}, "source": "document-service:Document.issuer"},
    },
}

ROOMS = [
    {"number": "101", "floor": 1, "view": "garden"},
    {"number": "205", "floor": 2, "view": "sea"},
    {"number": "310", "floor": 3, "view": "city"},
    {"number": "402", "floor": 4, "view": "sea"},
]

DOCUMENTS = [
    {"id": "D1", "number": "US123456789", "issuer": "US"},
    {"id": "D2", "number": "UK987654321", "issuer": "UK"},
    {"id": "D3", "number": "CA555555555", "issuer": "CA"},
]


@pytest.fixture
def stay_catalog(catalog_config) -> SourceCatalog:
    catalog_config["services"]["document-service"] = "https://document-service.domain"
    catalog_config["entities"]["reservation-service"]["Room"] = {
        "route": "/api/rooms",
        "key": "number",
        "fields": {"number": "ids", "floor": "mini", "view": "normal"},
    }
    catalog_config["entities"]["document-service"] = {
        "Document": {
            "route": "/api/documents",
            "fields": {"id": "ids", "number": "ids", "issuer": "mini"},
        },
    }
    return SourceCatalog.from_dict(catalog_config)


@pytest.fixture
def stay_schema():
    return ResourceRegistry.from_dict({"GuestStay": copy.deepcopy(STAY_RESOURCE_CONFIG)}).get("GuestStay")


@pytest.fixture
def stay_data(static_data) -> dict:
    static_data["reservation-service"]["Room"] = copy.deepcopy(ROOMS)
    static_data["document-service"] = {"Document": copy.deepcopy(DOCUMENTS)}
    return static_data
