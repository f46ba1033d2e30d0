"""
Core utilities and configuration for the SQL to Avro exporter.

This package provides foundational components used throughout the export:

Modules:
    config: Application configuration and environment variable management
    database: Source database engine creation
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import create_export_engine
    from core.exceptions import SchemaInferenceError, PartitionExecutionError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Open a connection to the source table
    engine = create_export_engine(config)
    async with engine.connect() as conn:
        pass
"""

__all__ = [
    "settings",
    "create_export_engine",
    "setup_logging",
    # Exceptions
    "ExportError",
    "ConfigurationError",
    "SchemaInferenceError",
    "PartitionExecutionError",
    "PersistenceError",
]
