"""
Database package for PPOB Chat.

Exports database initialization, models, and session management.
"""
from .init_db import (
    AsyncSessionLocal,
    build_engine,
    build_session_factory,
    engine,
    initialize_database,
)
from .models import Base, ProductModel, TransactionModel, AdminStatsModel

__all__ = [
    "AsyncSessionLocal",
    "build_engine",
    "build_session_factory",
    "engine",
    "initialize_database",
    "Base",
    "ProductModel",
    "TransactionModel",
    "AdminStatsModel",
]
