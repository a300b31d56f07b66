"""
Database Module
SQLAlchemy models, connection management and the persistence gateway.
"""

from .connection import DatabaseConnection, get_db
from .gateway import PersistenceGateway
from .models import (
    Base,
    Boat,
    DockmasterCredential,
    SyncStatus,
    WorkOrder,
    WorkOrderOperation
)

__all__ = [
    'Base',
    'Boat',
    'DatabaseConnection',
    'DockmasterCredential',
    'PersistenceGateway',
    'SyncStatus',
    'WorkOrder',
    'WorkOrderOperation',
    'get_db'
]
