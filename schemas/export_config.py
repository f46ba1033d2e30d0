"""
Pydantic model for export configuration with validation
"""

import re
from datetime import date
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.config import settings

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*)?$")
CODEC_PATTERN = re.compile(r"^(null|deflate[1-9]?|snappy|bzip2|xz|zstandard)$")

DEFAULT_DEFLATE_LEVEL = 6


def parse_codec(codec: str) -> Tuple[str, Optional[int]]:
    """
    Split a codec option into a fastavro codec name and compression level.

    "deflate6" -> ("deflate", 6), "deflate" -> ("deflate", 6), "snappy" -> ("snappy", None)
    """
    if codec.startswith("deflate"):
        level = codec[len("deflate"):]
        return "deflate", int(level) if level else DEFAULT_DEFLATE_LEVEL
    return codec, None


class ExportConfig(BaseModel):
    """
    Configuration for a single table export.

    Loaded once and immutable for the run. The output root is validated
    by the orchestrator, before any database access.
    """

    model_config = ConfigDict(frozen=True)

    # Connection
    connection_url: str = Field(..., min_length=1)
    driver: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = Field(None, repr=False)

    # Source
    table_name: str
    fetch_size: int = Field(default_factory=lambda: settings.EXPORT_FETCH_SIZE, gt=0)

    # Avro output
    avro_codec: str = Field(default_factory=lambda: settings.EXPORT_AVRO_CODEC)
    avro_schema_namespace: str = Field(default_factory=lambda: settings.EXPORT_SCHEMA_NAMESPACE)
    avro_doc: Optional[str] = None
    use_avro_logical_types: bool = False
    output: Optional[str] = None

    # Partitioning
    partition_column: Optional[str] = None
    partition: Optional[date] = None
    partition_period_days: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, gt=0)
    split_column: Optional[str] = None
    query_parallelism: Optional[int] = Field(None, ge=1)

    @field_validator("table_name", "partition_column", "split_column")
    @classmethod
    def check_identifier(cls, v):
        """Reject anything that is not a plain (optionally schema-qualified) identifier"""
        if v is not None and not IDENTIFIER_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid SQL identifier")
        return v

    @field_validator("avro_codec")
    @classmethod
    def check_codec(cls, v):
        v = v.strip().lower()
        if not CODEC_PATTERN.match(v):
            raise ValueError(
                f"Unsupported Avro codec '{v}'. "
                "Use null, deflate, deflate1-9, snappy, bzip2, xz or zstandard"
            )
        return v

    @model_validator(mode="after")
    def check_partitioning(self):
        if (self.split_column is None) != (self.query_parallelism is None):
            raise ValueError("split_column and query_parallelism must be set together")
        if self.partition_column is not None and self.partition is None:
            raise ValueError("partition_column requires a partition date")
        return self

    @property
    def codec_name(self) -> str:
        return parse_codec(self.avro_codec)[0]

    @property
    def codec_level(self) -> Optional[int]:
        return parse_codec(self.avro_codec)[1]
