"""
PrismPDF - Custom Exceptions Module

This module defines custom exception classes for the failures that can
abort a page-set operation or a workspace access.
"""


class PrismPdfError(Exception):
    """Base exception for all PrismPDF errors.

    All custom exceptions inherit from this class so callers can catch
    any PrismPDF-specific failure in one place.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class SourceReadError(PrismPdfError):
    """Raised when a source file cannot be read."""

    summary = "Could not read source"

    def __init__(self, source_name: str, reason: str | None = None) -> None:
        """Initialize the exception.

        Args:
            source_name: Name or path of the unreadable source
            reason: Optional reason for the failure
        """
        self.source_name = source_name
        self.reason = reason
        msg = f"{self.summary}: {source_name}"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg, details=f"source={source_name}")


class ParseError(SourceReadError):
    """Raised when a source is readable but is not a valid document."""

    summary = "Not a valid PDF document"


class PageIndexError(PrismPdfError):
    """Raised when a page reference points outside its source document."""

    def __init__(self, index: int, page_count: int, source_name: str | None = None) -> None:
        """Initialize the exception.

        Args:
            index: The offending 0-based page index
            page_count: Number of pages in the source
            source_name: Optional name of the source document
        """
        self.index = index
        self.page_count = page_count
        self.source_name = source_name

        msg = f"Page index {index} is out of range (document has {page_count} pages)"
        details = f"source={source_name}" if source_name else None
        super().__init__(msg, details=details)


class SerializeError(PrismPdfError):
    """Raised when an output document cannot be encoded to bytes."""

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        msg = "Failed to write the output document"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class StorageError(PrismPdfError):
    """Raised when the workspace store cannot be read or written."""

    def __init__(
        self,
        operation: str,
        reason: str | None = None,
        file_id: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            operation: The store operation that failed (save, list, read, delete)
            reason: Optional reason for the failure
            file_id: Optional id of the record involved
        """
        self.operation = operation
        self.reason = reason
        self.file_id = file_id

        msg = f"Workspace {operation} failed"
        if reason:
            msg += f": {reason}"
        details = f"id={file_id}" if file_id else None
        super().__init__(msg, details=details)


class EmptySelectionError(PrismPdfError):
    """Raised when an operation is triggered with nothing to produce."""

    def __init__(self, operation: str, reason: str | None = None) -> None:
        self.operation = operation
        self.reason = reason
        msg = f"Nothing to {operation}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# Exception hierarchy summary:
# PrismPdfError (base)
# ├── SourceReadError
# │   └── ParseError
# ├── PageIndexError
# ├── SerializeError
# ├── StorageError
# └── EmptySelectionError
