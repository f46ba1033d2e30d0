"""
Query partitioning: turns an export configuration into an ordered set of
disjoint SQL queries, one per partition unit.

build_queries is pure and deterministic. The persisted query files are an
audit trail, so the same configuration must always render the same text in
the same order.
"""

import math
from datetime import timedelta
from typing import List, Optional, Tuple
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from core.exceptions import SchemaInferenceError
from schemas.export import ExportQuery
from schemas.export_config import ExportConfig

logger = logging.getLogger(__name__)

SplitBounds = Tuple[int, int]


def _partition_condition(config: ExportConfig) -> str:
    if config.partition_column is None or config.partition is None:
        return ""
    start = config.partition
    end = start + timedelta(days=config.partition_period_days)
    column = config.partition_column
    return f" AND {column} >= '{start.isoformat()}' AND {column} < '{end.isoformat()}'"


def _base_query(config: ExportConfig) -> str:
    return f"SELECT * FROM {config.table_name} WHERE 1=1{_partition_condition(config)}"


def split_ranges(min_value: int, max_value: int, parallelism: int) -> List[Tuple[int, int, bool]]:
    """
    Split [min_value, max_value] into at most `parallelism` contiguous ranges.

    Returns (lower, upper, is_last) tuples. Every range is half-open except
    the last, which includes max_value.
    """
    if parallelism < 1:
        raise ValueError("parallelism must be at least 1")
    if max_value < min_value:
        raise ValueError(f"Invalid split bounds: min {min_value} > max {max_value}")

    bucket = max(math.ceil((max_value - min_value) / parallelism), 1)
    ranges = []
    lower = min_value
    while True:
        upper = lower + bucket
        if upper >= max_value:
            ranges.append((lower, max_value, True))
            return ranges
        ranges.append((lower, upper, False))
        lower = upper


def build_queries(config: ExportConfig, split_bounds: Optional[SplitBounds] = None) -> Tuple[ExportQuery, ...]:
    """
    Render the ordered partition queries for an export.

    Args:
        config: Export configuration
        split_bounds: (min, max) of the split column, None when there is no
            split column or the table has no rows to split

    Returns:
        Tuple of ExportQuery, indexed from 0
    """
    base = _base_query(config)
    limit = f" LIMIT {config.limit}" if config.limit else ""

    if config.split_column is None or split_bounds is None:
        return (ExportQuery(index=0, sql=f"{base}{limit}"),)

    column = config.split_column
    queries = []
    for index, (lower, upper, is_last) in enumerate(
        split_ranges(split_bounds[0], split_bounds[1], config.query_parallelism)
    ):
        upper_op = "<=" if is_last else "<"
        sql = f"{base} AND {column} >= {lower} AND {column} {upper_op} {upper}{limit}"
        queries.append(ExportQuery(index=index, sql=sql))

    return tuple(queries)


def bounds_query(config: ExportConfig) -> str:
    column = config.split_column
    return (
        f"SELECT MIN({column}) AS min_split, MAX({column}) AS max_split "
        f"FROM {config.table_name} WHERE 1=1{_partition_condition(config)}"
    )


async def fetch_split_bounds(conn: AsyncConnection, config: ExportConfig) -> Optional[SplitBounds]:
    """
    Read the split column range; None when no split is configured or no rows match.

    Raises:
        SchemaInferenceError: if the bounds query fails or the column is not integral
    """
    if config.split_column is None:
        return None

    query = bounds_query(config)
    try:
        result = await conn.execute(text(query))
        min_value, max_value = result.one()
    except Exception as e:
        raise SchemaInferenceError(
            "Failed to read split column bounds",
            context={"table_name": config.table_name, "query": query},
            original_exception=e
        )

    if min_value is None or max_value is None:
        logger.warning(f"No rows to split on {config.split_column}, exporting with a single query")
        return None

    try:
        bounds = (int(min_value), int(max_value))
    except (TypeError, ValueError) as e:
        raise SchemaInferenceError(
            "Split column must be integral",
            context={"table_name": config.table_name, "split_column": config.split_column},
            original_exception=e
        )

    logger.info(f"Split bounds for {config.split_column}: {bounds}")
    return bounds
