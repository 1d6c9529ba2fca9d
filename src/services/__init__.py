"""
Services package.

Storage is re-exported here. The gamification, strategist and suggestion
services are imported from their modules directly (they depend on
src.audit, which itself depends on storage).
"""

from src.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "NotFoundError",
    "StorageError",
]
