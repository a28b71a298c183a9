from ragjobs.store.service import Record, RecordNotFoundError, RecordStore, StoreError
from ragjobs.store.types import RESULT_COLLECTIONS, Collection

__all__ = [
    "Collection",
    "RESULT_COLLECTIONS",
    "Record",
    "RecordStore",
    "StoreError",
    "RecordNotFoundError",
]
