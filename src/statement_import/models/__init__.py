"""Database models."""
from statement_import.models.category import Category
from statement_import.models.import_confirmation import ImportConfirmation
from statement_import.models.statement_upload import ParsedTransactionRecord, StatementUploadRecord
from statement_import.models.transaction import Transaction

__all__ = [
    "Category",
    "ImportConfirmation",
    "ParsedTransactionRecord",
    "StatementUploadRecord",
    "Transaction",
]
