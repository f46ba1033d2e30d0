"""
Partition unit: reads one query's rows and writes them to one Avro shard.
"""

import time
from pathlib import Path
from typing import Any, Dict
import logging

from fastavro.write import Writer
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from core.exceptions import PartitionExecutionError
from exporter.avro_types import to_avro_value
from exporter.metrics import (
    MetricsRegistry,
    BYTES_WRITTEN,
    EXECUTE_QUERY_ELAPSED_MS,
    RECORD_COUNT,
    SHARD_COUNT,
    WRITE_ELAPSED_MS,
)
from schemas.avro import AvroSchema
from schemas.export import ExportQuery

logger = logging.getLogger(__name__)


class AvroPartitionWriter:
    """
    Exports partition queries to Avro files with a schema fixed up front.

    One writer instance is shared by all units of an export; it holds only
    read-only state (engine, frozen schema, codec) plus the metrics registry.
    Each export() call opens its own connection and its own file.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        schema: AvroSchema,
        metrics: MetricsRegistry,
        fetch_size: int,
        codec: str = "null",
        codec_level: Any = None
    ):
        self.engine = engine
        self.schema = schema
        self.metrics = metrics
        self.fetch_size = fetch_size
        self.codec = codec
        self.codec_level = codec_level
        self._parsed_schema = schema.parsed()

    def to_record(self, mapping) -> Dict[str, Any]:
        return {
            field.name: to_avro_value(mapping[field.column_name], field)
            for field in self.schema.fields
        }

    async def export(self, query: ExportQuery, destination: Path) -> int:
        """
        Stream a query's rows into a single Avro container file.

        Returns:
            Number of records written

        Raises:
            PartitionExecutionError: on any read, conversion or write failure
        """
        logger.info(f"Partition {query.index}: running query -> {destination.name}")
        start = time.monotonic()
        record_count = 0

        try:
            async with self.engine.connect() as conn:
                result = await conn.stream(
                    text(query.sql),
                    execution_options={"yield_per": self.fetch_size}
                )
                query_elapsed_ms = int((time.monotonic() - start) * 1000)
                write_start = time.monotonic()

                with destination.open("wb") as fo:
                    writer = Writer(
                        fo,
                        self._parsed_schema,
                        codec=self.codec,
                        compression_level=self.codec_level,
                    )
                    async for rows in result.partitions():
                        for row in rows:
                            writer.write(self.to_record(row._mapping))
                            record_count += 1
                    writer.flush()

                write_elapsed_ms = int((time.monotonic() - write_start) * 1000)

            bytes_written = destination.stat().st_size

        except Exception as e:
            raise PartitionExecutionError(
                "Partition export failed",
                context={
                    "query_index": query.index,
                    "destination": str(destination),
                    "records_written": record_count
                },
                original_exception=e
            )

        self.metrics.inc(RECORD_COUNT, record_count)
        self.metrics.inc(EXECUTE_QUERY_ELAPSED_MS, query_elapsed_ms)
        self.metrics.inc(WRITE_ELAPSED_MS, write_elapsed_ms)
        self.metrics.inc(BYTES_WRITTEN, bytes_written)
        self.metrics.inc(SHARD_COUNT)

        logger.info(
            f"Partition {query.index}: wrote {record_count} records "
            f"({bytes_written} bytes) in {write_elapsed_ms} ms"
        )
        return record_count
