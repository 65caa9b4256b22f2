from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from jobledger.models.base import Base


class PausedJob(Base):
    """Marker row: the job with this id is administratively paused."""

    __tablename__ = "paused_jobs"

    id: Mapped[str] = mapped_column(String(1000), primary_key=True)
