"""
Core business logic - independent of the HTTP layer.
Used by the web API and by scheduled jobs.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, is_configured

# Enums
from .enums import EventType, RegistrationStatus, TriggerKind, RunStatus, DeliveryStatus

__all__ = [
    # Database (SQLAlchemy)
    'get_connection', 'get_transaction', 'get_engine', 'close_engine', 'is_configured',
    # Enums
    'EventType', 'RegistrationStatus', 'TriggerKind', 'RunStatus', 'DeliveryStatus',
]
