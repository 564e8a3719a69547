"""Statement import domain model."""

from .events import ConfirmedTransactionData, StatementImportConfirmed
from .statement_upload import ImportStatus, ParsedTransaction, StatementUpload

__all__ = [
    "ConfirmedTransactionData",
    "ImportStatus",
    "ParsedTransaction",
    "StatementImportConfirmed",
    "StatementUpload",
]
