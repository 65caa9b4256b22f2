"""Job execution history model."""

from datetime import datetime
from typing import Any

from sqlalchemy import CHAR, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from jobledger.models.base import Base


class Execution(Base):
    """One finished job run. Rows are written once and never updated."""

    __tablename__ = "executions"
    __table_args__ = (
        Index("execution_by_job", "job"),
        Index("execution_by_start_time", "start_time"),
        Base.__table_args__,
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True)
    job: Mapped[str] = mapped_column(String(1000))
    start_time: Mapped[datetime]
    end_time: Mapped[datetime]
    context: Mapped[dict[str, Any]]
    success: Mapped[bool]

    def __repr__(self) -> str:
        outcome = "success" if self.success else "failure"
        return f"<Execution {self.id} {self.job[:50]} {outcome}>"
