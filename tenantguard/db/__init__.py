"""Database package"""

from tenantguard.db.session import AsyncSessionLocal, engine, get_db
from tenantguard.models.base import Base

__all__ = ["Base", "AsyncSessionLocal", "engine", "get_db"]
