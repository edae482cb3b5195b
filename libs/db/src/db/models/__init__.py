"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger models used by ``expense_tracker``.
"""

from .ledger import Base, EtCategory, EtImportLog, EtMapping, EtSetting, EtTransaction

__all__ = [
    "Base",
    "EtCategory",
    "EtMapping",
    "EtTransaction",
    "EtSetting",
    "EtImportLog",
]
