"""Mutation queue and offline-first orchestration."""

from petwatch.cli.sync.orchestrator import (
    MutationOutcome,
    MutationStatus,
    ReadResult,
    RemoteClient,
    SyncOrchestrator,
)
from petwatch.cli.sync.queue import (
    MutationQueue,
    OperationOutcome,
    QueuedOperation,
    QueuedOperationEntry,
    SyncSummary,
)

__all__ = [
    "MutationOutcome",
    "MutationQueue",
    "MutationStatus",
    "OperationOutcome",
    "QueuedOperation",
    "QueuedOperationEntry",
    "ReadResult",
    "RemoteClient",
    "SyncOrchestrator",
    "SyncSummary",
]
