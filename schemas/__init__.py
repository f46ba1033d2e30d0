"""
Pydantic schemas for configuration and data exchanged during an export.

Schemas:
    export_config: Export configuration (connection, table, codec, partitioning)
    avro: Frozen Avro schema shared by every partition unit
    export: Partition queries, export status and result summary

Usage:
    from schemas.export_config import ExportConfig
    from schemas.avro import AvroSchema, AvroField
    from schemas.export import ExportQuery, ExportResult, ExportStatus
"""

__all__ = [
    "ExportConfig",
    "AvroSchema",
    "AvroField",
    "ExportQuery",
    "ExportResult",
    "ExportStatus",
]
