"""Typed events published by the sync engine."""

from __future__ import annotations

from dataclasses import dataclass

from models.pending_op import PendingOperation


class SyncEvent:
    """Base class of every published event; subscribe to it to receive all."""


@dataclass(frozen=True)
class ConnectivityChanged(SyncEvent):
    is_online: bool


@dataclass(frozen=True)
class SyncStarted(SyncEvent):
    pass


@dataclass(frozen=True)
class SyncCompleted(SyncEvent):
    success: bool
    processed: int = 0
    failed: int = 0


@dataclass(frozen=True)
class OperationFailed(SyncEvent):
    operation: PendingOperation
    error: BaseException


__all__ = [
    "SyncEvent",
    "ConnectivityChanged",
    "SyncStarted",
    "SyncCompleted",
    "OperationFailed",
]
