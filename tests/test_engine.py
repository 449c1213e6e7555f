"""
End-to-end tests for the aggregation engine.
"""

import asyncio
import datetime

import pytest

from bffgraph.core.catalog import SourceCatalog
from bffgraph.core.errors import (
    AuthenticationError,
    ConfigurationError,
    PrimaryFetchError,
    UnknownResourceError,
)
from bffgraph.core.query_types import Operation
from bffgraph.core.registry import ResourceRegistry
from bffgraph.iam import ComputedRoleMatcher, FieldAccessResolver
from bffgraph.runtime.assembler import to_dict
from bffgraph.runtime.context import AuthContext
from bffgraph.runtime.engine import AggregationEngine, ItemResult


@pytest.mark.asyncio
async def test_admin_collection(engine, client, admin):
    records = await engine.collection("GuestReservation", admin)

    assert [r.id for r in records] == ["G001", "G002", "G003"]
    assert to_dict(records[1]) == {
        "id": "G002",
        "reservationId": "R102",
        "name": "Jane Smith",
        "email": "jane@example.com",
        "nationality": "UK",
        "birthDate": "1990-03-22",
        "checkInDate": "2025-05-10",
        "checkOutDate": "2025-05-15",
        "roomNumber": "205",
    }
    assert client.services_called() == ["guest-service", "reservation-service"]


@pytest.mark.asyncio
async def test_distributor_sees_subset_without_reservation_fetch(engine, client, distributor):
    records = await engine.collection("GuestReservation", distributor)

    assert to_dict(records[0]) == {"id": "G001", "reservationId": "R101", "name": "John Doe"}
    assert client.services_called() == ["guest-service"]


@pytest.mark.asyncio
async def test_selfcheckin_gets_room_numbers(engine, client, selfcheckin):
    records = await engine.collection("GuestReservation", selfcheckin)

    assert [to_dict(r) for r in records][2] == {"id": "G003", "reservationId": "R103", "roomNumber": "310"}
    assert client.services_called() == ["guest-service", "reservation-service"]


@pytest.mark.asyncio
async def test_collection_filters(engine, admin):
    records = await engine.collection("GuestReservation", admin, {"countryCode": "CA"})

    assert [r.name for r in records] == ["Bob Johnson"]


@pytest.mark.asyncio
async def test_item(engine, admin):
    result = await engine.item("GuestReservation", "G001", admin)

    assert isinstance(result, ItemResult)
    assert result.found
    assert result.record.checkOutDate == datetime.date(2025, 5, 5)


@pytest.mark.asyncio
async def test_item_not_found(engine, admin):
    result = await engine.item("GuestReservation", "G404", admin)

    assert result == ItemResult(record=None, found=False)
    assert not result.no_access


@pytest.mark.asyncio
async def test_nothing_visible_short_circuits(engine, client):
    partner = AuthContext.create("partner", ["ACCESS"])

    assert await engine.collection("GuestReservation", partner) == []
    result = await engine.item("GuestReservation", "G001", partner)

    assert result.no_access
    assert client.calls == []


@pytest.mark.asyncio
async def test_missing_auth_fails_before_any_fetch(engine, client):
    with pytest.raises(AuthenticationError):
        await engine.collection("GuestReservation", None)
    with pytest.raises(AuthenticationError):
        await engine.collection("GuestReservation", AuthContext(portal="", roles=frozenset()))

    assert client.calls == []


@pytest.mark.asyncio
async def test_unknown_resource(engine, admin):
    with pytest.raises(UnknownResourceError):
        await engine.collection("Invoice", admin)


@pytest.mark.asyncio
async def test_configuration_error_before_any_fetch(catalog_config, registry, client, admin):
    del catalog_config["entities"]["reservation-service"]["Reservation"]["route"]
    engine = AggregationEngine(registry, SourceCatalog.from_dict(catalog_config), client)

    with pytest.raises(ConfigurationError):
        await engine.collection("GuestReservation", admin)
    assert client.calls == []


@pytest.mark.asyncio
async def test_secondary_failure_returns_degraded_records(registry, catalog, make_client, admin, caplog):
    engine = AggregationEngine(registry, catalog, make_client(fail=("reservation-service",)))

    records = await engine.collection("GuestReservation", admin)

    assert to_dict(records[0]) == {
        "id": "G001",
        "reservationId": "R101",
        "name": "John Doe",
        "email": "john@example.com",
        "nationality": "US",
        "birthDate": "1985-06-15",
    }
    assert "degraded result" in caplog.text


@pytest.mark.asyncio
async def test_primary_failure_propagates(registry, catalog, make_client, admin):
    engine = AggregationEngine(registry, catalog, make_client(fail=("guest-service",)))

    with pytest.raises(PrimaryFetchError):
        await engine.item("GuestReservation", "G001", admin)


@pytest.mark.asyncio
async def test_concurrent_requests_are_isolated(engine, admin, distributor):
    admin_records, distributor_records, admin_item = await asyncio.gather(
        engine.collection("GuestReservation", admin),
        engine.collection("GuestReservation", distributor),
        engine.item("GuestReservation", "G002", admin),
    )

    assert all(r.email is not None for r in admin_records)
    assert all(set(to_dict(r)) == {"id", "reservationId", "name"} for r in distributor_records)
    assert admin_item.record.roomNumber == "205"


@pytest.mark.asyncio
async def test_execute_operation(engine, admin):
    operation = Operation(kind="item", resource_type="GuestReservation", item_id="G003")

    result = await engine.execute(operation, admin)

    assert result.record.name == "Bob Johnson"


@pytest.mark.asyncio
async def test_computed_role_matching(resource_config, catalog, make_client):
    expected = "ROLE_HOTEL-BFF-GUESTRESERVATION_ACCESS"
    resource_config["GuestReservation"]["fields"]["name"]["access"]["admin"].append(expected)

    engine = AggregationEngine(
        ResourceRegistry.from_dict(resource_config),
        catalog,
        make_client(),
        resolver=FieldAccessResolver(role_matcher=ComputedRoleMatcher("hotel-bff")),
    )

    records = await engine.collection("GuestReservation", AuthContext.create("admin", [expected]))

    assert to_dict(records[0]) == {"name": "John Doe"}


def test_item_operation_requires_item_id():
    with pytest.raises(ValueError):
        Operation(kind="item", resource_type="GuestReservation")
