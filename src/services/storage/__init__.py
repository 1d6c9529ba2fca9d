"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory backend serves tests and
the local chat console.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    EntryStorageInterface,
    GamificationStorageInterface,
    NotFoundError,
    ProfileStorageInterface,
    StorageError,
)
from src.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
)
from src.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "EntryStorageInterface",
    "GamificationStorageInterface",
    "ProfileStorageInterface",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
]
