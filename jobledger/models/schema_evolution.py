from datetime import datetime

from sqlalchemy import SmallInteger
from sqlalchemy.orm import Mapped, mapped_column

from jobledger.models.base import Base


class SchemaEvolution(Base):
    """Bookkeeping row for one applied schema version."""

    __tablename__ = "schema_evolutions"

    schema_version: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    schema_update: Mapped[datetime]
