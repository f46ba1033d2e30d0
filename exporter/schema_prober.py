"""
Schema inference from a single probe query against the live table.
"""

import time
from typing import Any, Dict, List, Optional, Sequence
import logging

from sqlalchemy import inspect, text
from sqlalchemy.exc import CompileError, NoSuchTableError
from sqlalchemy.ext.asyncio import AsyncEngine

from core.database import masked_url
from core.exceptions import SchemaInferenceError
from exporter.avro_types import (
    TIMESTAMP_MILLIS,
    avro_type_for_sql,
    avro_type_for_value,
    is_temporal_sql,
    normalize_name,
)
from exporter.metrics import MetricsRegistry, SCHEMA_ELAPSED_MS
from schemas.avro import AvroField, AvroSchema
from schemas.export_config import ExportConfig

logger = logging.getLogger(__name__)


def probe_query(table_name: str) -> str:
    return f"SELECT * FROM {table_name} LIMIT 1"


def _type_name(sql_type) -> str:
    try:
        return str(sql_type)
    except CompileError:
        return type(sql_type).__name__


class SchemaProber:
    """
    Derives the export's one Avro schema before any partition starts.

    Column order comes from the probe result, column types from the
    inspector. An empty table is a valid source: only metadata is used,
    the probe row is just a fallback for columns the inspector cannot type.
    """

    def __init__(self, config: ExportConfig, metrics: MetricsRegistry):
        self.config = config
        self.metrics = metrics

    async def create_schema(self, engine: AsyncEngine) -> AvroSchema:
        """
        Probe the table and build the schema.

        Records the elapsed time of the whole probe as the
        schema_elapsed_ms gauge.

        Raises:
            SchemaInferenceError: connection failure, missing table,
                failing probe or no usable columns
        """
        start = time.monotonic()
        table_name = self.config.table_name
        query = probe_query(table_name)

        try:
            async with engine.connect() as conn:
                result = await conn.execute(text(query))
                columns = list(result.keys())
                row = result.first()
                reflected = await conn.run_sync(self._reflect_types)
        except Exception as e:
            raise SchemaInferenceError(
                "Failed to probe source table",
                context={"table_name": table_name, "query": query},
                original_exception=e
            )

        probe_values = dict(zip(columns, row)) if row is not None else {}
        if row is None:
            logger.warning(f"Table {table_name} is empty, schema built from metadata only")

        schema = self.build_schema(columns, reflected, probe_values)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        self.metrics.set_gauge(SCHEMA_ELAPSED_MS, elapsed_ms)
        logger.info(f"Elapsed time to schema {elapsed_ms / 1000.0} seconds")

        return schema

    def _reflect_types(self, sync_conn) -> Dict[str, Any]:
        schema_name: Optional[str] = None
        table_name = self.config.table_name
        if "." in table_name:
            schema_name, table_name = table_name.split(".", 1)

        try:
            reflected = inspect(sync_conn).get_columns(table_name, schema=schema_name)
        except NoSuchTableError:
            logger.warning(f"Could not reflect {self.config.table_name}, typing columns from probe row")
            return {}

        return {col["name"]: col["type"] for col in reflected}

    def build_schema(
        self,
        columns: Sequence[str],
        reflected: Dict[str, Any],
        probe_values: Optional[Dict[str, Any]] = None
    ) -> AvroSchema:
        """Assemble the frozen schema from column names and types"""
        probe_values = probe_values or {}
        table_name = self.config.table_name

        if not columns:
            raise SchemaInferenceError(
                "Probe query returned no columns",
                context={"table_name": table_name}
            )

        fields: List[AvroField] = []
        seen: Dict[str, str] = {}

        for column in columns:
            name = normalize_name(column)
            if name in seen:
                raise SchemaInferenceError(
                    "Columns map to the same Avro field name",
                    context={"table_name": table_name, "field": name, "columns": [seen[name], column]}
                )
            seen[name] = column

            sql_type = reflected.get(column)
            value = probe_values.get(column)

            if sql_type is not None:
                avro_type = avro_type_for_sql(sql_type)
                sql_type_name = _type_name(sql_type)
            else:
                avro_type = avro_type_for_value(value)
                sql_type_name = "UNKNOWN"

            # timestamp-millis annotates long only
            logical_type = None
            if (
                self.config.use_avro_logical_types
                and avro_type == "long"
                and is_temporal_sql(sql_type, value)
            ):
                logical_type = TIMESTAMP_MILLIS

            fields.append(AvroField(
                name=name,
                column_name=column,
                sql_type=sql_type_name,
                avro_type=avro_type,
                logical_type=logical_type,
            ))

        doc = self.config.avro_doc or (
            f"Generate schema from SQL result set of {table_name} {masked_url(self.config)}"
        )

        return AvroSchema(
            name=normalize_name(table_name),
            namespace=self.config.avro_schema_namespace,
            doc=doc,
            table_name=table_name,
            fields=tuple(fields),
        )
