"""Error codes and user-friendly messages.

This module defines the error catalog for the statement import pipeline.
Each error has:
- code: Unique identifier
- message: Technical description (for logs)
- user_message: User-friendly explanation
- suggestion: Actionable guidance for the user
- retry_allowed: Whether the same request may be retried as-is
"""

# Error catalog for statement imports
ERROR_CATALOG: dict[str, dict] = {
    # Input validation (rejected before an import exists)
    "API_001": {
        "code": "API_001",
        "message": "Invalid file type uploaded",
        "user_message": "Only PDF statements are supported.",
        "suggestion": "Please upload a PDF file. Most banks provide statements in PDF format.",
        "retry_allowed": False,
    },
    "API_002": {
        "code": "API_002",
        "message": "File size exceeds maximum limit",
        "user_message": "The file is too large.",
        "suggestion": "Please upload a smaller statement file.",
        "retry_allowed": False,
    },
    "API_003": {
        "code": "API_003",
        "message": "Uploaded file is empty",
        "user_message": "The uploaded file is empty.",
        "suggestion": "Please choose the statement file again and re-upload it.",
        "retry_allowed": False,
    },
    "VAL_001": {
        "code": "VAL_001",
        "message": "Request data failed validation",
        "user_message": "Some of the submitted data is missing or invalid.",
        "suggestion": "Please check your input and try again.",
        "retry_allowed": False,
    },
    # Import lookup / ownership / state machine
    "IMPORT_001": {
        "code": "IMPORT_001",
        "message": "Statement upload not found",
        "user_message": "We couldn't find this statement import.",
        "suggestion": "Please check the import ID and try again.",
        "retry_allowed": False,
    },
    "IMPORT_002": {
        "code": "IMPORT_002",
        "message": "Access denied: import belongs to a different user",
        "user_message": "You are not authorized to access this import.",
        "suggestion": "You can only access your own statement imports.",
        "retry_allowed": False,
    },
    "IMPORT_003": {
        "code": "IMPORT_003",
        "message": "Operation not allowed for the current import status",
        "user_message": "This operation is not allowed for the current import status.",
        "suggestion": "Refresh the page to see the latest status of this import.",
        "retry_allowed": False,
    },
    "IMPORT_004": {
        "code": "IMPORT_004",
        "message": "Parsed transaction not found in import",
        "user_message": "We couldn't find one of the transactions you edited.",
        "suggestion": "Refresh the page and try again.",
        "retry_allowed": False,
    },
    # Pipeline failures (recorded on the import as Failed)
    "STORAGE_001": {
        "code": "STORAGE_001",
        "message": "Failed to store the uploaded file",
        "user_message": "We couldn't save your statement file.",
        "suggestion": "Please try uploading again in a few moments.",
        "retry_allowed": True,
    },
    "PARSE_001": {
        "code": "PARSE_001",
        "message": "Failed to extract text from the PDF",
        "user_message": "We couldn't read any text from this statement.",
        "suggestion": "Scanned or image-only statements are not supported. Download a text PDF from your bank and upload it again.",
        "retry_allowed": False,
    },
    "PARSE_002": {
        "code": "PARSE_002",
        "message": "Failed to parse the statement using AI",
        "user_message": "We couldn't understand the transactions in this statement.",
        "suggestion": "Please upload the statement again. Contact support if this persists.",
        "retry_allowed": False,
    },
    "PARSE_003": {
        "code": "PARSE_003",
        "message": "No transactions were found in the statement",
        "user_message": "We didn't find any purchases in this statement.",
        "suggestion": "Make sure you uploaded a statement that lists individual transactions.",
        "retry_allowed": False,
    },
    "PARSE_004": {
        "code": "PARSE_004",
        "message": "No categories are available for the user",
        "user_message": "We couldn't categorize your transactions.",
        "suggestion": "Please contact support; your category list appears to be empty.",
        "retry_allowed": False,
    },
    # Confirmation
    "CONFIRM_001": {
        "code": "CONFIRM_001",
        "message": "Transaction creation failed after the import was confirmed",
        "user_message": "Your import was confirmed but some transactions could not be created.",
        "suggestion": "Do not re-upload this statement. Retry the confirmation or contact support.",
        "retry_allowed": False,
    },
    "CONFIRM_002": {
        "code": "CONFIRM_002",
        "message": "No pending confirmation exists for this import",
        "user_message": "There is nothing left to retry for this import.",
        "suggestion": "Refresh the page to see the latest status of this import.",
        "retry_allowed": False,
    },
    # Persistence
    "DB_002": {
        "code": "DB_002",
        "message": "Concurrent modification detected",
        "user_message": "This import was changed by another request.",
        "suggestion": "Reload the import and try again.",
        "retry_allowed": True,
    },
    # System
    "SYS_001": {
        "code": "SYS_001",
        "message": "Internal server error",
        "user_message": "An unexpected error occurred.",
        "suggestion": "Please try again later or contact support.",
        "retry_allowed": True,
    },
}


def get_error(error_code: str) -> dict:
    """Get error definition by code.

    Args:
        error_code: Error code from the catalog

    Returns:
        Dict with error details (a generic definition for unknown codes)
    """
    if error_code not in ERROR_CATALOG:
        return {
            "code": "UNKNOWN",
            "message": f"Unknown error code: {error_code}",
            "user_message": "An unexpected error occurred.",
            "suggestion": "Please try again. Contact support if the problem persists.",
            "retry_allowed": True,
        }
    return ERROR_CATALOG[error_code]


def get_user_message(error_code: str) -> str:
    """Get user-friendly message for an error code."""
    return get_error(error_code)["user_message"]


def is_retryable(error_code: str) -> bool:
    """Check if an error is retryable."""
    return get_error(error_code)["retry_allowed"]
