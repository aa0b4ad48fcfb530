"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import RedisClient
from .sql_store import SqlBookingStore, SqlListingStore

__all__ = ["RedisClient", "SqlBookingStore", "SqlListingStore"]
