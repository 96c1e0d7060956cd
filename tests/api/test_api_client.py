"""Tests for the pet hub API client."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import httpx
import pytest

from petwatch.api.client import PetHubClient
from petwatch.api.models import (
    CurfewTime,
    DateRange,
    DeviceCommand,
    HistoryKind,
    LockState,
    Location,
    PetLocationUpdate,
    SetCurfewCommand,
    SetLockStateCommand,
)
from petwatch.errors import AuthorizationError, PermanentError, TransientError

BASE_URL = "https://hub.test/api"
DASHBOARD_URL = "https://dash.test/api/dashboard/pet"
TOKEN = "secret-token"

START_PAYLOAD = {
    "data": {
        "pets": [
            {"id": 1, "name": "Tom", "household_id": 9, "position": {"where": 1}},
            {"id": 2, "name": "Kit", "household_id": 9},
        ],
        "devices": [
            {
                "id": 5,
                "name": "Back door",
                "product_id": 6,
                "household_id": 9,
                "status": {"locking": {"mode": 3}, "online": True},
            }
        ],
    }
}


def _make_client(handler) -> PetHubClient:
    transport = httpx.MockTransport(handler)
    return PetHubClient(
        base_url=BASE_URL,
        dashboard_url=DASHBOARD_URL,
        http_client=httpx.AsyncClient(transport=transport),
    )


class TestReads:
    """Fetching pets and devices."""

    @pytest.mark.asyncio
    async def test_fetch_pets_sends_bearer_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=START_PAYLOAD)

        async with _make_client(handler) as client:
            pets = await client.fetch_pets(TOKEN)

        assert [pet.name for pet in pets] == ["Tom", "Kit"]
        assert pets[0].location == Location.INSIDE
        assert seen[0].url.path == "/api/me/start"
        assert seen[0].headers["Authorization"] == f"Bearer {TOKEN}"

    @pytest.mark.asyncio
    async def test_fetch_devices(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=START_PAYLOAD)

        async with _make_client(handler) as client:
            devices = await client.fetch_devices(TOKEN)

        assert len(devices) == 1
        assert devices[0].status is not None
        assert devices[0].status.locking is not None
        assert devices[0].status.locking.mode == LockState.LOCKED

    @pytest.mark.asyncio
    async def test_missing_lists_are_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {}})

        async with _make_client(handler) as client:
            assert await client.fetch_pets(TOKEN) == []

    @pytest.mark.asyncio
    async def test_malformed_body_is_permanent(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>oops</html>")

        async with _make_client(handler) as client:
            with pytest.raises(PermanentError):
                await client.fetch_pets(TOKEN)

    @pytest.mark.asyncio
    async def test_invalid_pet_shape_is_permanent(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"pets": [{"name": "no id"}]}})

        async with _make_client(handler) as client:
            with pytest.raises(PermanentError, match="Malformed pet data"):
                await client.fetch_pets(TOKEN)


class TestErrorMapping:
    """HTTP failures come back as petwatch errors."""

    @pytest.mark.asyncio
    async def test_unauthorized(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "expired"})

        async with _make_client(handler) as client:
            with pytest.raises(AuthorizationError) as exc_info:
                await client.fetch_pets(TOKEN)

        assert exc_info.value.status_code == 401
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with _make_client(handler) as client:
            with pytest.raises(TransientError):
                await client.fetch_devices(TOKEN)

    @pytest.mark.asyncio
    async def test_connection_failure_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _make_client(handler) as client:
            with pytest.raises(TransientError):
                await client.set_pet_location(TOKEN, 1, Location.INSIDE)


class TestWrites:
    """Mutations send the expected requests."""

    @pytest.mark.asyncio
    async def test_set_pet_location(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {}})

        async with _make_client(handler) as client:
            await client.set_pet_location(TOKEN, 7, Location.OUTSIDE)

        request = seen[0]
        body = json.loads(request.content)
        assert request.method == "POST"
        assert request.url.path == "/api/pet/7/position"
        assert body["where"] == 2
        assert "since" in body

    @pytest.mark.asyncio
    async def test_set_device_lock_state(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {}})

        async with _make_client(handler) as client:
            await client.set_device_lock_state(TOKEN, 5, LockState.KEEP_IN)

        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/api/device/5/control"
        assert json.loads(seen[0].content) == {"locking": 1}

    @pytest.mark.asyncio
    async def test_set_device_curfew(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {}})

        window = CurfewTime(enabled=True, lock_time="22:00", unlock_time="06:00")
        async with _make_client(handler) as client:
            await client.set_device_curfew(TOKEN, 5, [window])

        assert json.loads(seen[0].content) == {
            "curfew": [{"enabled": True, "lock_time": "22:00", "unlock_time": "06:00"}]
        }


class TestBatches:
    """Batch calls report per-item results instead of raising."""

    @pytest.mark.asyncio
    async def test_batch_locations_classifies_failures(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/pet/1/position":
                return httpx.Response(200, json={})
            if request.url.path == "/api/pet/2/position":
                return httpx.Response(503)
            return httpx.Response(404, text="no such pet")

        updates = [
            PetLocationUpdate(pet_id=pet_id, location=Location.INSIDE) for pet_id in (1, 2, 3)
        ]
        async with _make_client(handler) as client:
            result = await client.batch_set_pet_locations(TOKEN, updates)

        assert result.successful == [1]
        assert result.failed_ids == [2, 3]
        assert result.transient_failed_ids == [2]
        assert result.total_processed == 3
        assert result.failed[1].error.startswith("Failed to set location")

    @pytest.mark.asyncio
    async def test_batch_device_control_dispatches_each_command(self) -> None:
        bodies: dict[str, dict] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            bodies[request.url.path] = json.loads(request.content)
            return httpx.Response(200, json={})

        commands = [
            DeviceCommand(device_id=5, command=SetLockStateCommand(lock_state=LockState.LOCKED)),
            DeviceCommand(
                device_id=6,
                command=SetCurfewCommand(
                    curfew_times=[
                        CurfewTime(enabled=False, lock_time="20:00", unlock_time="07:00")
                    ]
                ),
            ),
        ]
        async with _make_client(handler) as client:
            result = await client.batch_device_control(TOKEN, commands)

        assert result.successful == [5, 6]
        assert not result.failed
        assert bodies["/api/device/5/control"] == {"locking": 3}
        assert "curfew" in bodies["/api/device/6/control"]


class TestHistory:
    """Dashboard history parsing."""

    @pytest.mark.asyncio
    async def test_feeding_history(self) -> None:
        seen: list[httpx.Request] = []
        payload = {
            "data": [
                {
                    "pet_id": 1,
                    "feeding": {
                        "device_ids": [5],
                        "number_of_visits": 9,
                        "activity": [
                            {"date": "2026-03-08T00:00:00+00:00", "total_consumption": 40.5},
                            {"date": "2026-03-09T00:00:00+00:00", "total_consumption": 30},
                            {"date": "2026-03-07T00:00:00+00:00", "total_consumption": 0},
                            {"date": "not a date", "total_consumption": 12},
                        ],
                    },
                },
                {
                    "pet_id": 2,
                    "feeding": {"activity": [{"date": "2026-03-08T00:00:00", "total_consumption": 99}]},
                },
            ]
        }

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=payload)

        date_range = DateRange.parse("week", now=datetime(2026, 3, 10, tzinfo=UTC))
        async with _make_client(handler) as client:
            history = await client.fetch_history(TOKEN, 1, date_range, HistoryKind.FEEDING)

        assert seen[0].url.host == "dash.test"
        assert seen[0].url.params["Pet_Id"] == "1"
        assert seen[0].url.params["dayshistory"] == "7"
        assert [day.amount for day in history.days] == [30.0, 40.5]
        assert history.total == pytest.approx(70.5)
        assert history.visits == 9

    @pytest.mark.asyncio
    async def test_activity_history_counts_seconds_outside(self) -> None:
        payload = {
            "data": [
                {
                    "pet_id": 1,
                    "movement": {
                        "trips_outside": 4,
                        "activity": [
                            {"date": "2026-03-09T00:00:00", "time_outside": "01:30:00"},
                            {"date": "2026-03-08T00:00:00", "time_outside": "bogus"},
                        ],
                    },
                }
            ]
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        date_range = DateRange.parse("today", now=datetime(2026, 3, 10, 12, tzinfo=UTC))
        async with _make_client(handler) as client:
            history = await client.fetch_history(TOKEN, 1, date_range, HistoryKind.ACTIVITY)

        assert [day.amount for day in history.days] == [5400.0]
        assert history.visits == 4

    @pytest.mark.asyncio
    async def test_history_without_data_is_permanent(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "nope"})

        async with _make_client(handler) as client:
            with pytest.raises(PermanentError):
                await client.fetch_history(
                    TOKEN, 1, DateRange.parse("week"), HistoryKind.DRINKING
                )
