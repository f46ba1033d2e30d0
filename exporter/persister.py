"""
Writes the export's side files under the output root
"""

import json
from pathlib import Path
from typing import Iterable, List, Mapping
import logging

from core.exceptions import PersistenceError
from schemas.avro import AvroSchema
from schemas.export import ExportQuery

logger = logging.getLogger(__name__)

SCHEMA_FILE = "_AVRO_SCHEMA.avsc"
QUERIES_DIR = "_queries"
METRICS_FILE = "_METRICS.json"
SHARD_EXTENSION = ".avro"


class ResultPersister:
    """
    Sink for schema text, query text and metrics.

    No retries: any write failure is a PersistenceError and ends the run.
    """

    def __init__(self, output: str):
        self.root = Path(output)

    def save_string(self, sub_path: str, content: str) -> Path:
        """Write UTF-8 text to a path relative to the output root"""
        path = self.root / sub_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise PersistenceError(
                "Failed to write output file",
                context={"path": str(path)},
                original_exception=e
            )
        logger.debug(f"Saved {path}")
        return path

    def save_schema(self, schema: AvroSchema) -> Path:
        return self.save_string(SCHEMA_FILE, schema.to_json(pretty=True))

    def save_queries(self, queries: Iterable[ExportQuery]) -> List[Path]:
        return [
            self.save_string(f"{QUERIES_DIR}/query_{query.index}.sql", query.sql)
            for query in queries
        ]

    def save_metrics(self, metrics: Mapping[str, int]) -> Path:
        content = json.dumps(dict(sorted(metrics.items())), indent=2)
        return self.save_string(METRICS_FILE, content)

    def shard_path(self, index: int, total: int) -> Path:
        """Shard file for a partition, keyed by query index rather than completion order"""
        return self.root / f"part-{index:05d}-of-{total:05d}{SHARD_EXTENSION}"

    def ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(
                "Failed to create output directory",
                context={"path": str(self.root)},
                original_exception=e
            )
