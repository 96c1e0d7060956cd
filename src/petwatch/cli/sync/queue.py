"""Durable queue of mutations waiting to be replayed against the service.

The queue is a single JSON array on disk. Every mutating call loads the whole
array, computes the new one and writes it back, so there is no in-memory
state that outlives a call.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal
from uuid import uuid4

import anyio
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from petwatch.api.models import (
    CurfewTime,
    DeviceCommand,
    LockState,
    Location,
    PetLocationUpdate,
)
from petwatch.cli.fileio import atomic_write_text
from petwatch.errors import QueueStorageError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class SetPetLocation(BaseModel):
    """Record a pet as inside or outside."""

    kind: Literal["set_pet_location"] = "set_pet_location"
    pet_id: int
    location: Location

    def describe(self) -> str:
        return f"Set pet {self.pet_id} location to {self.location.label}"


class SetDeviceLockState(BaseModel):
    """Change the lock mode of a flap."""

    kind: Literal["set_device_lock_state"] = "set_device_lock_state"
    device_id: int
    lock_state: LockState

    def describe(self) -> str:
        return f"Set device {self.device_id} lock state to {self.lock_state.label}"


class SetDeviceCurfew(BaseModel):
    """Replace the curfew windows of a flap."""

    kind: Literal["set_device_curfew"] = "set_device_curfew"
    device_id: int
    curfew_times: list[CurfewTime]

    def describe(self) -> str:
        return f"Set device {self.device_id} curfew"


class BatchSetPetLocations(BaseModel):
    """Several location updates applied together."""

    kind: Literal["batch_set_pet_locations"] = "batch_set_pet_locations"
    updates: list[PetLocationUpdate]

    def describe(self) -> str:
        return f"Batch set locations for {len(self.updates)} pets"


class BatchDeviceControl(BaseModel):
    """Several device commands applied together."""

    kind: Literal["batch_device_control"] = "batch_device_control"
    commands: list[DeviceCommand]

    def describe(self) -> str:
        return f"Batch control {len(self.commands)} devices"


QueuedOperation = Annotated[
    SetPetLocation
    | SetDeviceLockState
    | SetDeviceCurfew
    | BatchSetPetLocations
    | BatchDeviceControl,
    Field(discriminator="kind"),
]


class QueuedOperationEntry(BaseModel):
    """A queued operation plus its bookkeeping."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    operation: QueuedOperation
    queued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES


_ENTRIES = TypeAdapter(list[QueuedOperationEntry])


class OutcomeStatus(str, Enum):
    """How the replay of one queued operation ended."""

    SUCCESS = "success"
    RETRY = "retry"
    FAIL = "fail"


@dataclass
class OperationOutcome:
    """Result reported by an executor for one operation."""

    status: OutcomeStatus
    message: str | None = None

    @classmethod
    def success(cls) -> "OperationOutcome":
        return cls(OutcomeStatus.SUCCESS)

    @classmethod
    def retry(cls, message: str) -> "OperationOutcome":
        return cls(OutcomeStatus.RETRY, message)

    @classmethod
    def fail(cls, message: str) -> "OperationOutcome":
        return cls(OutcomeStatus.FAIL, message)


Executor = Callable[[QueuedOperation], Awaitable[OperationOutcome]]


@dataclass
class SyncSummary:
    """Tallies from one pass over the queue."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0


class MutationQueue:
    """FIFO queue of pending mutations persisted as one JSON document."""

    def __init__(self, path: Path, max_retries: int = DEFAULT_MAX_RETRIES):
        """Initialize the queue.

        Args:
            path: Location of the queue document. Created on first write.
            max_retries: Retry cap stamped onto newly enqueued entries.
        """
        self.path = anyio.Path(path)
        self.max_retries = max_retries

    async def _load(self) -> list[QueuedOperationEntry]:
        try:
            raw = await self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise QueueStorageError(f"Failed to read queue {self.path}: {exc}") from exc

        try:
            return _ENTRIES.validate_json(raw)
        except ValidationError as exc:
            # Left on disk untouched; the next write replaces it.
            logger.warning(
                "Queue file %s is unreadable, treating it as empty: %s",
                self.path,
                exc.errors()[0]["msg"] if exc.errors() else exc,
            )
            return []

    async def _save(self, entries: list[QueuedOperationEntry]) -> None:
        content = _ENTRIES.dump_json(entries, indent=2).decode("utf-8")
        try:
            await atomic_write_text(self.path, content)
        except OSError as exc:
            raise QueueStorageError(f"Failed to write queue {self.path}: {exc}") from exc

    async def enqueue(self, operation: QueuedOperation) -> str:
        """Append an operation and return the id of its new entry.

        Raises:
            QueueStorageError: If the queue cannot be read or written.
        """
        entries = await self._load()
        entry = QueuedOperationEntry(operation=operation, max_retries=self.max_retries)
        entries.append(entry)
        await self._save(entries)
        logger.info("Queued %s (id %s)", operation.describe(), entry.id)
        return entry.id

    async def size(self) -> int:
        """Number of queued entries."""
        return len(await self._load())

    async def is_empty(self) -> bool:
        """True when nothing is queued."""
        return await self.size() == 0

    async def get_all(self) -> list[QueuedOperationEntry]:
        """Every queued entry in replay order."""
        return await self._load()

    async def remove(self, entry_id: str) -> bool:
        """Delete the entry with ``entry_id``.

        Returns:
            True if an entry was removed.
        """
        entries = await self._load()
        remaining = [entry for entry in entries if entry.id != entry_id]
        if len(remaining) == len(entries):
            return False
        await self._save(remaining)
        return True

    async def clear(self) -> None:
        """Drop every queued entry."""
        await self._save([])

    async def synchronize(self, executor: Executor) -> SyncSummary:
        """Replay every queued entry once, in order.

        Successful and permanently failed entries are dropped. Entries that
        fail transiently stay queued with ``retry_count`` bumped, unless they
        have already used up ``max_retries``, in which case they are dropped
        and counted as failed.

        The queue is rewritten after each entry, so an interrupted pass keeps
        the entries it has not reached yet. Exceptions raised by the executor
        propagate and leave the unprocessed entries in place.

        Args:
            executor: Coroutine function replaying a single operation.

        Returns:
            Tallies for the pass.
        """
        entries = await self._load()
        summary = SyncSummary(total=len(entries))
        kept: list[QueuedOperationEntry] = []

        for index, entry in enumerate(entries):
            outcome = await executor(entry.operation)
            description = entry.operation.describe()

            if outcome.status is OutcomeStatus.SUCCESS:
                summary.succeeded += 1
                logger.debug("Replayed %s (id %s)", description, entry.id)
            elif outcome.status is OutcomeStatus.RETRY:
                if entry.retry_count < entry.max_retries:
                    entry.retry_count += 1
                    kept.append(entry)
                    summary.retried += 1
                    logger.warning(
                        "Will retry %s (attempt %d/%d): %s",
                        description,
                        entry.retry_count,
                        entry.max_retries,
                        outcome.message,
                    )
                else:
                    summary.failed += 1
                    logger.error(
                        "Giving up on %s after %d retries: %s",
                        description,
                        entry.max_retries,
                        outcome.message,
                    )
            else:
                summary.failed += 1
                logger.error("Dropping %s: %s", description, outcome.message)

            await self._save(kept + entries[index + 1 :])

        return summary
