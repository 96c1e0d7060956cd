"""Async client for the pet hub REST API."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from petwatch import __version__
from petwatch.api.models import (
    BatchError,
    BatchResult,
    CurfewTime,
    DateRange,
    Device,
    DeviceCommand,
    HistoryDay,
    HistoryKind,
    LockState,
    Location,
    Pet,
    PetHistory,
    PetLocationUpdate,
    SetCurfewCommand,
    SetLockStateCommand,
)
from petwatch.errors import PermanentError, RemoteError, classify_http_error

logger = logging.getLogger(__name__)

_PETS = TypeAdapter(list[Pet])
_DEVICES = TypeAdapter(list[Device])


class PetHubClient:
    """Client for the pet hub API.

    One instance holds a single connection pool for the whole CLI session.
    The bearer credential is passed to every call rather than stored.
    """

    BASE_URL = "https://app.api.surehub.io/api"
    DASHBOARD_URL = "https://app-api.production.surehub.io/api/dashboard/pet"

    def __init__(
        self,
        base_url: str | None = None,
        dashboard_url: str | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Base URL of the REST API. Defaults to the production URL.
            dashboard_url: URL of the history dashboard endpoint.
            timeout: Request timeout in seconds.
            http_client: Preconfigured httpx client, mainly for tests.
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.dashboard_url = dashboard_url or self.DASHBOARD_URL
        self.timeout = timeout
        self._client = http_client or httpx.AsyncClient(
            timeout=self.timeout,
            headers={
                "Content-Type": "application/json",
                "User-Agent": f"petwatch/{__version__}",
            },
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> PetHubClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _request(
        self, method: str, url: str, credential: str, **kwargs: Any
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {credential}"}
        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise classify_http_error(exc) from exc
        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise PermanentError(
                "Malformed response from server", status_code=response.status_code
            ) from exc

    async def _fetch_start(self, credential: str) -> dict[str, Any]:
        response = await self._request("GET", f"{self.base_url}/me/start", credential)
        body = self._json(response)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise PermanentError("Malformed start response: missing 'data'")
        return data

    async def fetch_pets(self, credential: str) -> list[Pet]:
        """Fetch every pet in the household.

        Raises:
            RemoteError: If the request fails or the payload is malformed.
        """
        data = await self._fetch_start(credential)
        try:
            return _PETS.validate_python(data.get("pets") or [])
        except ValidationError as exc:
            raise PermanentError(f"Malformed pet data: {exc}") from exc

    async def fetch_devices(self, credential: str) -> list[Device]:
        """Fetch every device in the household.

        Raises:
            RemoteError: If the request fails or the payload is malformed.
        """
        data = await self._fetch_start(credential)
        try:
            return _DEVICES.validate_python(data.get("devices") or [])
        except ValidationError as exc:
            raise PermanentError(f"Malformed device data: {exc}") from exc

    async def set_pet_location(
        self, credential: str, pet_id: int, location: Location
    ) -> None:
        """Record a pet as inside or outside."""
        payload = {"where": int(location), "since": datetime.now(UTC).isoformat()}
        await self._request(
            "POST", f"{self.base_url}/pet/{pet_id}/position", credential, json=payload
        )

    async def set_device_lock_state(
        self, credential: str, device_id: int, state: LockState
    ) -> None:
        """Change the lock mode of a flap."""
        await self._request(
            "PUT",
            f"{self.base_url}/device/{device_id}/control",
            credential,
            json={"locking": int(state)},
        )

    async def set_device_curfew(
        self, credential: str, device_id: int, times: list[CurfewTime]
    ) -> None:
        """Replace the curfew windows of a flap."""
        await self._request(
            "PUT",
            f"{self.base_url}/device/{device_id}/control",
            credential,
            json={"curfew": [t.model_dump() for t in times]},
        )

    async def batch_set_pet_locations(
        self, credential: str, updates: list[PetLocationUpdate]
    ) -> BatchResult:
        """Apply several location updates, collecting per-item failures."""
        result = BatchResult(total_processed=len(updates))
        for update in updates:
            try:
                await self.set_pet_location(credential, update.pet_id, update.location)
            except RemoteError as exc:
                result.failed.append(
                    BatchError(
                        id=update.pet_id,
                        error=f"Failed to set location: {exc.message}",
                        transient=exc.kind.queueable,
                    )
                )
            else:
                result.successful.append(update.pet_id)
        return result

    async def batch_device_control(
        self, credential: str, commands: list[DeviceCommand]
    ) -> BatchResult:
        """Apply several device commands, collecting per-item failures."""
        result = BatchResult(total_processed=len(commands))
        for item in commands:
            try:
                if isinstance(item.command, SetLockStateCommand):
                    await self.set_device_lock_state(
                        credential, item.device_id, item.command.lock_state
                    )
                elif isinstance(item.command, SetCurfewCommand):
                    await self.set_device_curfew(
                        credential, item.device_id, item.command.curfew_times
                    )
                else:
                    raise TypeError(f"Unhandled device command: {item.command!r}")
            except RemoteError as exc:
                result.failed.append(
                    BatchError(
                        id=item.device_id,
                        error=f"Failed to execute command: {exc.message}",
                        transient=exc.kind.queueable,
                    )
                )
            else:
                result.successful.append(item.device_id)
        return result

    async def fetch_history(
        self,
        credential: str,
        pet_id: int,
        date_range: DateRange,
        kind: HistoryKind,
    ) -> PetHistory:
        """Fetch daily feeding, drinking or activity totals for a pet.

        Raises:
            RemoteError: If the request fails or the payload is malformed.
        """
        params = {
            "Pet_Id": str(pet_id),
            "From": date_range.start.isoformat(),
            "dayshistory": str(date_range.days),
        }
        response = await self._request("GET", self.dashboard_url, credential, params=params)
        return _parse_history(self._json(response), pet_id, date_range, kind)


def _parse_history(
    payload: Any, pet_id: int, date_range: DateRange, kind: HistoryKind
) -> PetHistory:
    entries = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        raise PermanentError("Malformed history response: missing 'data'")

    days: list[HistoryDay] = []
    visits: int | None = None
    for pet_data in entries:
        if not isinstance(pet_data, dict):
            continue
        returned_id = pet_data.get("pet_id")
        if returned_id is not None and returned_id != pet_id:
            continue
        section = pet_data.get(kind.section)
        if not isinstance(section, dict):
            continue

        for daily in section.get("activity") or []:
            day = _parse_day(daily, kind)
            if day is not None and day.amount > 0:
                days.append(day)

        count_key = "trips_outside" if kind is HistoryKind.ACTIVITY else "number_of_visits"
        count = section.get(count_key)
        if isinstance(count, int):
            visits = count

    days.sort(key=lambda day: day.date, reverse=True)
    logger.debug("Parsed %d %s days for pet %s", len(days), kind.value, pet_id)
    return PetHistory(
        pet_id=pet_id,
        kind=kind,
        days=days,
        total=sum(day.amount for day in days),
        visits=visits,
        range_days=date_range.days,
    )


def _parse_day(daily: Any, kind: HistoryKind) -> HistoryDay | None:
    if not isinstance(daily, dict) or not isinstance(daily.get("date"), str):
        return None
    try:
        date = datetime.fromisoformat(daily["date"])
    except ValueError:
        return None
    if date.tzinfo is None:
        date = date.replace(tzinfo=UTC)

    if kind is HistoryKind.ACTIVITY:
        amount = _parse_duration(daily.get("time_outside"))
    else:
        consumption = daily.get("total_consumption")
        amount = float(consumption) if isinstance(consumption, int | float) else None
    if amount is None:
        return None
    return HistoryDay(date=date, amount=amount)


def _parse_duration(value: Any) -> float | None:
    """Convert ``HH:MM:SS`` into seconds."""
    if not isinstance(value, str):
        return None
    parts = value.split(":")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None
    hours, minutes, seconds = (int(part) for part in parts)
    return float(hours * 3600 + minutes * 60 + seconds)
