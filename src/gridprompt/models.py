"""
Core data model for batch prompt runs.

Defines:
- OutputColumn: Recursive description of the expected response shape
- JobInput: Validated parameters for one run
- ProcessedRow / ErrorRow: Per-row outcomes
- ProgressState / RunResult: Run accounting
- ProgressEvent, ActiveRequestsEvent, RowEvent, DoneEvent: Event stream
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Row = dict[str, Any]

ColumnType = Literal["string", "number", "boolean", "object", "array"]

# Keys added to success records for bookkeeping, stripped on export.
STATUS_KEY = "_status"
RAW_RESPONSE_KEY = "_raw_response"
BOOKKEEPING_KEYS = (STATUS_KEY, RAW_RESPONSE_KEY, "_error", "_rawResponse")


class RunState(str, Enum):
    """Lifecycle of a scheduler run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


# ============================================================================
# Input Models
# ============================================================================


class OutputColumn(BaseModel):
    """One field of the expected response, possibly with nested fields."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Field name in the response JSON")
    description: str | None = Field(
        default=None,
        description="Hint appended to the field in the schema text",
    )
    type: ColumnType = Field(default="string", description="Declared value type")
    nested_columns: list[OutputColumn] | None = Field(
        default=None,
        alias="nestedColumns",
        description="Child fields (used only for object and array types)",
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the camelCase layout used by column files."""
        return self.model_dump(by_alias=True, exclude_none=True)


OutputColumn.model_rebuild()


class JobInput(BaseModel):
    """Parameters of a single batch run."""

    rows: list[Row] = Field(..., description="Records to process, in order")
    prompt_template: str = Field(..., description="Template with {{column}} placeholders")
    output_columns: list[OutputColumn] = Field(
        default_factory=list,
        description="Expected response shape (empty: no schema block)",
    )
    concurrency: int = Field(default=3, ge=1, description="Maximum in-flight requests")
    rate_limit_per_minute: int = Field(
        default=60, ge=1, description="Admissions per 60 second window"
    )
    timeout_ms: int = Field(default=60000, ge=1, description="Per-call deadline")

    @field_validator("rows")
    @classmethod
    def validate_rows(cls, v: list[Row]) -> list[Row]:
        if not v:
            raise ValueError("rows must not be empty")
        return v

    @field_validator("prompt_template")
    @classmethod
    def validate_prompt_template(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("prompt_template must not be blank")
        return v

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


# ============================================================================
# Row Outcomes
# ============================================================================


@dataclass
class ProcessedRow:
    """
    Successful row: original fields merged with the parsed response.

    Attributes:
        index: Position of the row in the input
        data: Original fields overlaid with parsed fields (parsed wins)
        raw_response: Unmodified response text
    """

    index: int
    data: Row
    raw_response: str
    status: str = "success"

    def to_record(self) -> Row:
        """Flat record including bookkeeping keys."""
        record = dict(self.data)
        record[STATUS_KEY] = self.status
        record[RAW_RESPONSE_KEY] = self.raw_response
        return record

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "status": self.status,
            "data": self.data,
            "raw_response": self.raw_response,
        }


@dataclass
class ErrorRow:
    """
    Failed row: original fields plus the failure message.

    Attributes:
        index: Position of the row in the input
        row: Original fields
        message: Human-readable error message
        error_type: CallErrorType value or "unknown"
    """

    index: int
    row: Row
    message: str
    error_type: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "row": self.row,
            "message": self.message,
            "error_type": self.error_type,
        }


@dataclass
class ProgressState:
    """Completion counters for the current run."""

    completed: int = 0
    total: int = 0
    in_flight: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "total": self.total,
            "in_flight": self.in_flight,
        }


@dataclass
class RunResult:
    """Outcome of a finished (or aborted) run."""

    state: RunState
    success: list[ProcessedRow] = field(default_factory=list)
    errors: list[ErrorRow] = field(default_factory=list)
    progress: ProgressState = field(default_factory=ProgressState)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def success_count(self) -> int:
        return len(self.success)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def skipped_count(self) -> int:
        """Rows that never settled because the run was aborted."""
        return self.progress.total - self.progress.completed

    @property
    def duration_ms(self) -> int:
        if self.started_at is None or self.completed_at is None:
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        """Summary for JSON output (records excluded)."""
        return {
            "state": self.state.value,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
            "progress": self.progress.to_dict(),
            "duration_ms": self.duration_ms,
            "errors": [
                {"index": e.index, "error_type": e.error_type, "message": e.message}
                for e in self.errors
            ],
        }


# ============================================================================
# Events
# ============================================================================


@dataclass
class ProgressEvent:
    """Emitted after each row settles."""

    completed: int
    total: int
    kind: str = "progress"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "completed": self.completed, "total": self.total}


@dataclass
class ActiveRequestsEvent:
    """Emitted when the in-flight count changes."""

    count: int
    kind: str = "active_requests"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "count": self.count}


@dataclass
class RowEvent:
    """Emitted when a row settles, with its data or error message."""

    index: int
    status: str  # 'success' | 'error'
    data: Row | None = None
    raw_response: str | None = None
    error: str | None = None
    kind: str = "row"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "index": self.index,
            "status": self.status,
            "data": self.data,
            "raw_response": self.raw_response,
            "error": self.error,
        }


@dataclass
class DoneEvent:
    """Emitted once when the run finishes or is aborted."""

    success_count: int
    error_count: int
    state: RunState
    kind: str = "done"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "state": self.state.value,
        }


Event = Union[ProgressEvent, ActiveRequestsEvent, RowEvent, DoneEvent]
EventCallback = Callable[[Event], None]
