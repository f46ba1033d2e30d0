"""
Pydantic schemas for partition queries and export results
"""

import enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExportStatus(str, enum.Enum):
    """Export run status"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class ExportQuery(BaseModel):
    """One bounded SQL query, consumed by exactly one partition unit"""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    sql: str = Field(..., min_length=1)


class ExportResult(BaseModel):
    """Summary of a completed export and the files it produced"""

    status: ExportStatus
    output: str
    schema_path: str
    query_paths: List[str] = Field(default_factory=list)
    shard_paths: List[str] = Field(default_factory=list)
    metrics_path: Optional[str] = None
    metrics: Dict[str, int] = Field(default_factory=dict)
