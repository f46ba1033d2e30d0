"""
Table to Avro export pipeline.

Modules:
    metrics: Shared metrics registry (counters and write-once gauges)
    avro_types: SQL type / Python value to Avro type mapping
    schema_prober: One-shot schema inference from a probe query
    partitioner: Deterministic query partitioning
    persister: Schema, query and metrics files under the output root
    avro_writer: Partition unit writing one Avro shard per query
    orchestrator: End-to-end export with fan-out and join
    cli: Command line entrypoint

Architecture:
    1. Probe - infer one frozen schema from the live table
    2. Partition - render ordered, disjoint queries
    3. Fan-out - one concurrent unit per query, all sharing the schema
    4. Join - wait for every unit; any failure fails the export
    5. Metrics - persisted only after a fully successful join

Usage:
    from exporter.orchestrator import ExportOrchestrator
    from schemas.export_config import ExportConfig

Example:
    config = ExportConfig(
        connection_url="postgresql+asyncpg://user@db/source",
        table_name="orders",
        output="/data/exports/orders",
        split_column="id",
        query_parallelism=8,
    )
    result = await ExportOrchestrator(config).run()

    print(f"Exported {result.metrics['record_count']} records")
"""

__all__ = [
    "ExportOrchestrator",
    "SchemaProber",
    "ResultPersister",
    "AvroPartitionWriter",
    "MetricsRegistry",
    "build_queries",
]
