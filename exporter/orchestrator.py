# ============================================================================
# File: exporter/orchestrator.py
# Description: Table export orchestrator (schema -> queries -> fan-out -> metrics)
# ============================================================================
"""
Export Orchestrator - drives a table export end to end.

Phases, strictly in order:
- Validate the output root (before any database or file access)
- Probe the table once and persist the frozen Avro schema
- Partition the table into ordered queries and persist them
- Fan out one unit per query, all sharing the schema, and join
- Persist metrics, only when every unit succeeded

Any failure aborts the whole export. There is no partial success and no
resume; files from a failed run stay on disk without a metrics file.
"""

import asyncio
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from core.config import settings
from core.database import create_export_engine
from core.exceptions import (
    ExportError,
    ConfigurationError,
    SchemaInferenceError,
    PartitionExecutionError,
)
from exporter.avro_writer import AvroPartitionWriter
from exporter.metrics import MetricsRegistry, PARTITION_COUNT
from exporter.partitioner import build_queries, fetch_split_bounds, SplitBounds
from exporter.persister import ResultPersister
from exporter.schema_prober import SchemaProber
from schemas.avro import AvroSchema
from schemas.export import ExportQuery, ExportResult, ExportStatus
from schemas.export_config import ExportConfig

logger = logging.getLogger(__name__)


class ExportOrchestrator:
    """
    Table export orchestrator

    Responsibilities:
    - Fail fast on a missing output root
    - Create exactly one schema per export, before any partition starts
    - Persist queries in partitioner order
    - Run partition units concurrently and join them
    - Persist metrics only after a fully successful join
    """

    def __init__(
        self,
        config: ExportConfig,
        max_concurrency: Optional[int] = None,
        engine_factory: Callable[[ExportConfig], AsyncEngine] = create_export_engine
    ):
        self.config = config
        self.max_concurrency = max_concurrency or settings.EXPORT_MAX_CONCURRENCY
        self.engine_factory = engine_factory
        self.metrics = MetricsRegistry()

    async def run(self, output: Optional[str] = None) -> ExportResult:
        """
        Run the export.

        Args:
            output: Output root; defaults to config.output

        Returns:
            ExportResult with the written paths and final metrics

        Raises:
            ConfigurationError: output root missing or empty
            SchemaInferenceError: schema probe or split bounds failed
            PartitionExecutionError: any partition unit failed
            PersistenceError: writing schema, query or metrics files failed
        """
        output = output if output is not None else self.config.output

        # --------------------------------------------------
        # PHASE 1: VALIDATE OUTPUT
        # --------------------------------------------------
        if output is None or not str(output).strip():
            raise ConfigurationError(
                "'output' must be defined",
                context={"option": "output"},
                table_name=self.config.table_name
            )

        self.metrics = MetricsRegistry()
        persister = ResultPersister(output)
        engine = self.engine_factory(self.config)

        try:
            persister.ensure_root()

            # --------------------------------------------------
            # PHASE 2: SCHEMA
            # --------------------------------------------------
            logger.info(f"Inferring schema for {self.config.table_name}")
            schema = await SchemaProber(self.config, self.metrics).create_schema(engine)
            schema_path = persister.save_schema(schema)
            logger.info(f"Schema with {len(schema.fields)} fields saved to {schema_path}")

            # --------------------------------------------------
            # PHASE 3: QUERIES
            # --------------------------------------------------
            split_bounds = await self._split_bounds(engine)
            queries = build_queries(self.config, split_bounds)
            query_paths = persister.save_queries(queries)
            self.metrics.inc(PARTITION_COUNT, len(queries))
            logger.info(f"Running queries: {[q.sql for q in queries]}")

            # --------------------------------------------------
            # PHASE 4: FAN-OUT AND JOIN
            # --------------------------------------------------
            shard_paths = await self._run_partitions(engine, schema, queries, persister)

            # --------------------------------------------------
            # PHASE 5: METRICS
            # --------------------------------------------------
            metrics = self.metrics.snapshot()
            metrics_path = persister.save_metrics(metrics)

            result = ExportResult(
                status=ExportStatus.SUCCESS,
                output=str(output),
                schema_path=str(schema_path),
                query_paths=[str(p) for p in query_paths],
                shard_paths=[str(p) for p in shard_paths],
                metrics_path=str(metrics_path),
                metrics=metrics,
            )

            logger.info(
                f"Export completed: {self.config.table_name} - "
                f"Partitions: {len(queries)}, Records: {metrics.get('record_count', 0)}"
            )
            return result

        except ExportError as e:
            e.for_table(self.config.table_name)
            logger.error(
                f"Export failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise

        except Exception as e:
            logger.exception("Unexpected error in export")
            raise ExportError(
                "Unexpected error in export",
                context={"output": str(output)},
                original_exception=e,
                table_name=self.config.table_name
            )

        finally:
            await engine.dispose()

    async def _split_bounds(self, engine: AsyncEngine) -> Optional[SplitBounds]:
        if self.config.split_column is None:
            return None
        try:
            async with engine.connect() as conn:
                return await fetch_split_bounds(conn, self.config)
        except SchemaInferenceError:
            raise
        except Exception as e:
            raise SchemaInferenceError(
                "Failed to connect for split bounds",
                context={"table_name": self.config.table_name},
                original_exception=e
            )

    async def _run_partitions(
        self,
        engine: AsyncEngine,
        schema: AvroSchema,
        queries: Sequence[ExportQuery],
        persister: ResultPersister
    ) -> List[Path]:
        """
        Run one unit per query and wait for all of them.

        On the first failure the remaining units are cancelled and the
        failure of the lowest-indexed failed query is raised.
        """
        writer = AvroPartitionWriter(
            engine,
            schema,
            self.metrics,
            fetch_size=self.config.fetch_size,
            codec=self.config.codec_name,
            codec_level=self.config.codec_level,
        )
        semaphore = asyncio.Semaphore(self.max_concurrency)
        total = len(queries)
        shard_paths = [persister.shard_path(q.index, total) for q in queries]

        async def run_unit(query: ExportQuery, destination: Path) -> int:
            async with semaphore:
                return await writer.export(query, destination)

        tasks: Dict[asyncio.Task, ExportQuery] = {
            asyncio.create_task(run_unit(query, path), name=f"partition-{query.index}"): query
            for query, path in zip(queries, shard_paths)
        }
        logger.info(f"Started {total} partition units (max concurrency {self.max_concurrency})")

        try:
            done, pending = await asyncio.wait(list(tasks), return_when=asyncio.FIRST_EXCEPTION)

            failed = [t for t in done if not t.cancelled() and t.exception() is not None]
            if failed:
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

                first = min(failed, key=lambda t: tasks[t].index)
                error = first.exception()
                logger.error(
                    f"{len(failed)} of {total} partitions failed, "
                    f"{len(pending)} cancelled"
                )
                if isinstance(error, PartitionExecutionError):
                    raise error
                raise PartitionExecutionError(
                    "Partition unit failed",
                    context={"query_index": tasks[first].index},
                    original_exception=error
                )
        finally:
            unfinished = [task for task in tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        return shard_paths
