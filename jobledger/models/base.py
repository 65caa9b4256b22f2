from datetime import datetime
from typing import Any

from sqlalchemy.orm import DeclarativeBase

from jobledger.core.codecs import JsonDocument, UtcTimestamp


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    type_annotation_map: dict[Any, Any] = {
        datetime: UtcTimestamp,
        dict[str, Any]: JsonDocument,
    }

    __table_args__ = {"mysql_engine": "InnoDB", "mysql_charset": "utf8mb3"}
