"""Offline-first coordination of reads, writes and queue replay."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Any, Generic, NamedTuple, Protocol, TypeVar, assert_never

from petwatch.api.models import (
    BatchResult,
    CurfewTime,
    DateRange,
    Device,
    DeviceCommand,
    HistoryKind,
    LockState,
    Location,
    Pet,
    PetHistory,
    PetLocationUpdate,
)
from petwatch.cli.cache.store import DEVICES_KEY, PETS_KEY, CacheStore, history_key
from petwatch.cli.client import is_reachable
from petwatch.cli.sync.queue import (
    BatchDeviceControl,
    BatchSetPetLocations,
    MutationQueue,
    OperationOutcome,
    QueuedOperation,
    SetDeviceCurfew,
    SetDeviceLockState,
    SetPetLocation,
    SyncSummary,
)
from petwatch.errors import CacheStorageError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteClient(Protocol):
    """Calls the orchestrator needs from the remote service."""

    async def fetch_pets(self, credential: str) -> list[Pet]: ...

    async def fetch_devices(self, credential: str) -> list[Device]: ...

    async def fetch_history(
        self, credential: str, pet_id: int, date_range: DateRange, kind: HistoryKind
    ) -> PetHistory: ...

    async def set_pet_location(
        self, credential: str, pet_id: int, location: Location
    ) -> None: ...

    async def set_device_lock_state(
        self, credential: str, device_id: int, state: LockState
    ) -> None: ...

    async def set_device_curfew(
        self, credential: str, device_id: int, times: list[CurfewTime]
    ) -> None: ...

    async def batch_set_pet_locations(
        self, credential: str, updates: list[PetLocationUpdate]
    ) -> BatchResult: ...

    async def batch_device_control(
        self, credential: str, commands: list[DeviceCommand]
    ) -> BatchResult: ...


Probe = Callable[[str], Awaitable[bool]]


class ReadResult(NamedTuple, Generic[T]):
    """Payload of a read and whether it came from the local cache."""

    data: T
    from_cache: bool
    cached_at: datetime | None = None


class MutationStatus(str, Enum):
    """Whether a write reached the service, was queued, or was rejected outright."""

    APPLIED = "applied"
    DEFERRED = "deferred"
    FAILED = "failed"


@dataclass
class MutationOutcome:
    """Result of a write through the orchestrator."""

    status: MutationStatus
    operation_id: str | None = None
    batch: BatchResult | None = None

    @property
    def deferred(self) -> bool:
        return self.status is MutationStatus.DEFERRED

    @property
    def failed(self) -> bool:
        return self.status is MutationStatus.FAILED


class QueueStatus(NamedTuple):
    """Number of pending operations and a description of each."""

    count: int
    descriptions: list[str]


def _settled(result: BatchResult) -> MutationOutcome:
    """Outcome of a batch with nothing left to queue."""
    if result.failed and not result.successful:
        return MutationOutcome(MutationStatus.FAILED, batch=result)
    return MutationOutcome(MutationStatus.APPLIED, batch=result)


class SyncOrchestrator:
    """Serve reads cache-first, writes remote-first, and replay the queue.

    Holds no state of its own beyond the three collaborators, so every call
    sees the current contents of the cache and the queue on disk.
    """

    def __init__(
        self,
        client: RemoteClient,
        cache: CacheStore,
        queue: MutationQueue,
        base_url: str,
        probe: Probe = is_reachable,
    ):
        """Initialize the orchestrator.

        Args:
            client: Remote service client.
            cache: Response cache.
            queue: Pending mutation queue.
            base_url: URL checked for reachability before replaying the queue.
            probe: Reachability check, replaceable in tests.
        """
        self.client = client
        self.cache = cache
        self.queue = queue
        self.base_url = base_url
        self.probe = probe

    # Read path

    async def _read(
        self,
        key: str,
        payload_type: Any,
        fetch: Callable[[], Awaitable[T]],
        force_refresh: bool,
    ) -> ReadResult[T]:
        if not force_refresh:
            entry = await self.cache.get(key, payload_type)
            if entry is not None:
                logger.debug("Cache hit for '%s'", key)
                return ReadResult(entry.data, True, entry.cached_at)

        try:
            data = await fetch()
        except RemoteError as exc:
            entry = await self.cache.get_fallback(key, payload_type)
            if entry is None:
                raise
            logger.warning(
                "Could not refresh %s (%s); using cached copy from %s",
                key,
                exc.message,
                entry.cached_at.isoformat(timespec="seconds"),
            )
            return ReadResult(entry.data, True, entry.cached_at)

        try:
            await self.cache.put(key, data)
        except CacheStorageError as exc:
            logger.warning("Could not update cache for %s: %s", key, exc.message)
        return ReadResult(data, False)

    async def get_pets(
        self, credential: str, force_refresh: bool = False
    ) -> ReadResult[list[Pet]]:
        """Pets from the cache when fresh, otherwise from the service.

        Raises:
            RemoteError: If the service fails and nothing is cached.
        """
        return await self._read(
            PETS_KEY, list[Pet], partial(self.client.fetch_pets, credential), force_refresh
        )

    async def get_devices(
        self, credential: str, force_refresh: bool = False
    ) -> ReadResult[list[Device]]:
        """Devices from the cache when fresh, otherwise from the service.

        Raises:
            RemoteError: If the service fails and nothing is cached.
        """
        return await self._read(
            DEVICES_KEY,
            list[Device],
            partial(self.client.fetch_devices, credential),
            force_refresh,
        )

    async def get_history(
        self,
        credential: str,
        pet_id: int,
        date_range: DateRange,
        kind: HistoryKind,
        force_refresh: bool = False,
    ) -> ReadResult[PetHistory]:
        """History for one pet and range, cached per pet, kind and range."""
        return await self._read(
            history_key(kind, pet_id, date_range),
            PetHistory,
            partial(self.client.fetch_history, credential, pet_id, date_range, kind),
            force_refresh,
        )

    # Write path

    async def _apply(
        self, operation: QueuedOperation, call: Callable[[], Awaitable[None]]
    ) -> MutationOutcome:
        try:
            await call()
        except RemoteError as exc:
            if not exc.kind.queueable:
                raise
            logger.warning("%s failed (%s); queued for later sync", operation.describe(), exc.message)
            operation_id = await self.queue.enqueue(operation)
            return MutationOutcome(MutationStatus.DEFERRED, operation_id=operation_id)
        return MutationOutcome(MutationStatus.APPLIED)

    async def set_pet_location(
        self, credential: str, pet_id: int, location: Location
    ) -> MutationOutcome:
        """Set a pet's location now, or queue it if the service is unavailable.

        Raises:
            RemoteError: For authorization and permanent failures.
            QueueStorageError: If the mutation had to be queued and could not be.
        """
        return await self._apply(
            SetPetLocation(pet_id=pet_id, location=location),
            partial(self.client.set_pet_location, credential, pet_id, location),
        )

    async def set_device_lock_state(
        self, credential: str, device_id: int, state: LockState
    ) -> MutationOutcome:
        """Set a flap's lock mode now, or queue it."""
        return await self._apply(
            SetDeviceLockState(device_id=device_id, lock_state=state),
            partial(self.client.set_device_lock_state, credential, device_id, state),
        )

    async def set_device_curfew(
        self, credential: str, device_id: int, times: list[CurfewTime]
    ) -> MutationOutcome:
        """Replace a flap's curfew now, or queue it."""
        return await self._apply(
            SetDeviceCurfew(device_id=device_id, curfew_times=times),
            partial(self.client.set_device_curfew, credential, device_id, times),
        )

    async def batch_set_pet_locations(
        self, credential: str, updates: list[PetLocationUpdate]
    ) -> MutationOutcome:
        """Apply a batch of location updates, queueing only the retryable failures.

        Items that failed permanently are reported in ``batch.failed`` and are
        not queued.
        """
        try:
            result = await self.client.batch_set_pet_locations(credential, updates)
        except RemoteError as exc:
            if not exc.kind.queueable:
                raise
            operation_id = await self.queue.enqueue(BatchSetPetLocations(updates=updates))
            return MutationOutcome(MutationStatus.DEFERRED, operation_id=operation_id)

        retry_ids = set(result.transient_failed_ids)
        pending = [update for update in updates if update.pet_id in retry_ids]
        if not pending:
            return _settled(result)
        operation_id = await self.queue.enqueue(BatchSetPetLocations(updates=pending))
        return MutationOutcome(MutationStatus.DEFERRED, operation_id=operation_id, batch=result)

    async def batch_device_control(
        self, credential: str, commands: list[DeviceCommand]
    ) -> MutationOutcome:
        """Apply a batch of device commands, queueing only the retryable failures."""
        try:
            result = await self.client.batch_device_control(credential, commands)
        except RemoteError as exc:
            if not exc.kind.queueable:
                raise
            operation_id = await self.queue.enqueue(BatchDeviceControl(commands=commands))
            return MutationOutcome(MutationStatus.DEFERRED, operation_id=operation_id)

        retry_ids = set(result.transient_failed_ids)
        pending = [command for command in commands if command.device_id in retry_ids]
        if not pending:
            return _settled(result)
        operation_id = await self.queue.enqueue(BatchDeviceControl(commands=pending))
        return MutationOutcome(MutationStatus.DEFERRED, operation_id=operation_id, batch=result)

    # Reconciliation

    async def replay(self, credential: str, operation: QueuedOperation) -> OperationOutcome:
        """Apply one queued operation and classify the result."""
        try:
            if isinstance(operation, SetPetLocation):
                await self.client.set_pet_location(
                    credential, operation.pet_id, operation.location
                )
            elif isinstance(operation, SetDeviceLockState):
                await self.client.set_device_lock_state(
                    credential, operation.device_id, operation.lock_state
                )
            elif isinstance(operation, SetDeviceCurfew):
                await self.client.set_device_curfew(
                    credential, operation.device_id, operation.curfew_times
                )
            elif isinstance(operation, BatchSetPetLocations):
                result = await self.client.batch_set_pet_locations(credential, operation.updates)
                return _batch_outcome(result)
            elif isinstance(operation, BatchDeviceControl):
                result = await self.client.batch_device_control(credential, operation.commands)
                return _batch_outcome(result)
            else:
                assert_never(operation)
        except RemoteError as exc:
            if exc.kind.queueable:
                return OperationOutcome.retry(exc.message)
            return OperationOutcome.fail(exc.message)
        return OperationOutcome.success()

    async def synchronize(self, credential: str) -> SyncSummary | None:
        """Replay queued operations if there are any and the service is reachable.

        Returns:
            Tallies for the pass, or None when nothing was attempted.
        """
        if await self.queue.is_empty():
            return None
        if not await self.probe(self.base_url):
            logger.info("Service unreachable at %s; leaving queue untouched", self.base_url)
            return None
        summary = await self.queue.synchronize(partial(self.replay, credential))
        logger.info(
            "Sync finished: %d succeeded, %d failed, %d to retry",
            summary.succeeded,
            summary.failed,
            summary.retried,
        )
        return summary

    async def queue_status(self) -> QueueStatus:
        """Pending operations, oldest first."""
        entries = await self.queue.get_all()
        return QueueStatus(len(entries), [entry.operation.describe() for entry in entries])

    async def clear_all(self) -> None:
        """Empty both the response cache and the mutation queue."""
        await self.cache.purge_all()
        await self.queue.clear()


def _batch_outcome(result: BatchResult) -> OperationOutcome:
    if not result.failed:
        return OperationOutcome.success()
    errors = "; ".join(f"{item.id}: {item.error}" for item in result.failed)
    if result.transient_failed_ids:
        return OperationOutcome.retry(errors)
    return OperationOutcome.fail(errors)
