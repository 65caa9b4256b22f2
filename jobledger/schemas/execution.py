from datetime import datetime
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator, model_validator

from jobledger.core.datetime_utils import to_naive_utc


class ExecutionRecord(BaseModel):
    """An immutable log entry for one completed job run."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1, max_length=36)
    job: str = Field(min_length=1, max_length=1000)
    start_time: datetime
    end_time: datetime
    context: dict[str, JsonValue] = Field(default_factory=dict)
    success: bool

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def _check_ordering(self) -> "ExecutionRecord":
        if self.start_time > self.end_time:
            raise ValueError("start_time must not be after end_time")
        return self

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()


class ExecutionStat(BaseModel):
    """Timing summary of one run, as charted per job."""

    start_time: datetime
    duration_seconds: float
    status: Literal["successful", "failure"]

    @classmethod
    def from_record(cls, record: ExecutionRecord) -> "ExecutionStat":
        return cls(
            start_time=record.start_time,
            duration_seconds=record.duration_seconds,
            status="successful" if record.success else "failure",
        )
