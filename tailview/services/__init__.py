from .api import LogStoreClient, LogStoreError, LogStoreNotFound

__all__ = [
    "LogStoreClient",
    "LogStoreError",
    "LogStoreNotFound",
]
