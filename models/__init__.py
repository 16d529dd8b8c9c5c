"""Value types and tables used by the offline sync engine."""
from .cache_entry import CacheEntry
from .pending_op import OperationType, PendingOperation
from .store_record import StoreRecord

__all__ = ["CacheEntry", "OperationType", "PendingOperation", "StoreRecord"]
