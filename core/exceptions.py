"""
Custom exceptions for the export pipeline with structured error context.

Every error raised by the export is fatal to the whole run: there is no
partial success and no retry at this layer. Each exception carries context
information for debugging and monitoring.

Exception Hierarchy:
    ExportError (base)
    ├── ConfigurationError
    ├── SchemaInferenceError
    ├── PartitionExecutionError
    └── PersistenceError
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ExportError(Exception):
    """
    Base exception for all export-related errors.

    Attributes:
        message: Human-readable error message
        table_name: Source table of the failed export (if known)
        context: Additional context information (query index, path, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        table_name: Optional[str] = None
    ):
        self.message = message
        self.context = dict(context or {})
        self.original_exception = original_exception
        self.table_name = table_name or self.context.get("table_name")
        self.timestamp = datetime.now(timezone.utc)

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def for_table(self, table_name: str) -> "ExportError":
        """Attach the exported table unless the raiser already did"""
        if self.table_name is None:
            self.table_name = table_name
        return self

    def __str__(self) -> str:
        table = f"[{self.table_name}]" if self.table_name else ""
        parts = [f"{self.__class__.__name__}{table}: {self.message}"]

        if self.context:
            parts.append(", ".join(f"{k}={v}" for k, v in self.context.items() if k != "table_name"))

        if self.original_exception:
            parts.append(f"Caused by: {type(self.original_exception).__name__}: {self.original_exception}")

        return " | ".join(p for p in parts if p)

    def to_dict(self) -> Dict[str, Any]:
        """Flat record of the failure for structured log output"""
        return {
            "error_type": self.__class__.__name__,
            "table_name": self.table_name,
            "message": self.message,
            "context": self.context,
            "failed_at": self.timestamp.isoformat(),
            "cause": repr(self.original_exception) if self.original_exception else None
        }


class ConfigurationError(ExportError):
    """
    Exception raised when the export is misconfigured.

    Raised before any database access or file is written.

    Context should include:
        - option: Name of the offending option
        - value: The rejected value (never credentials)
    """
    pass


class SchemaInferenceError(ExportError):
    """
    Exception raised when the output schema cannot be derived.

    Covers connection failures, missing tables, failing probe queries
    and probe results without usable columns.

    Context should include:
        - table_name: Table being probed
        - query: Probe or bounds query that failed (if applicable)
    """
    pass


class PartitionExecutionError(ExportError):
    """
    Exception raised when a partition unit fails to read or encode its rows.

    Context should include:
        - query_index: Index of the partition query
        - destination: Shard file being written
    """
    pass


class PersistenceError(ExportError):
    """
    Exception raised when writing schema, query or metrics files fails.

    Context should include:
        - path: Target file path
    """
    pass
