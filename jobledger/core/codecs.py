"""
Codecs between domain values and their stored representation.

Two value types need conversion:

- timestamps: naive datetimes interpreted as UTC, carried through epoch
  milliseconds so a round trip is exact to the millisecond
- documents: JSON-like structures, stored as canonical JSON text

Codecs are looked up explicitly by value type with `codec_for`. The
SQLAlchemy column types at the bottom of the module route every bound
parameter and every fetched value through them.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Text
from sqlalchemy.dialects import mysql
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator, TypeEngine

from jobledger.core.datetime_utils import from_epoch_millis, to_epoch_millis
from jobledger.core.errors import DataCorruptionError


@dataclass(frozen=True)
class Codec:
    """An encode/decode pair for one domain value type."""

    name: str
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]


def encode_timestamp(value: datetime) -> int:
    """Epoch milliseconds of a UTC instant. Aware datetimes are converted to UTC first."""
    return to_epoch_millis(value)


def decode_timestamp(millis: int) -> datetime:
    """Naive UTC datetime for epoch milliseconds."""
    return from_epoch_millis(millis)


def encode_document(document: Any) -> str:
    """Serialize a document to canonical JSON text."""
    return json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def decode_document(text: str) -> Any:
    """
    Parse stored JSON text back into a document.

    The ledger only ever writes well-formed JSON, so a parse failure means
    the row was changed outside of it.

    Raises:
        DataCorruptionError: If the text is not valid JSON
    """
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise DataCorruptionError(f"Stored document is not well-formed JSON: {text!r:.80}") from e


TIMESTAMP_CODEC = Codec(name="timestamp", encode=encode_timestamp, decode=decode_timestamp)
DOCUMENT_CODEC = Codec(name="document", encode=encode_document, decode=decode_document)

_CODECS: dict[type, Codec] = {
    datetime: TIMESTAMP_CODEC,
    dict: DOCUMENT_CODEC,
}


def codec_for(value_type: type) -> Codec:
    """Look up the codec for a domain value type.

    Raises:
        KeyError: If no codec is registered for the type
    """
    try:
        return _CODECS[value_type]
    except KeyError:
        raise KeyError(f"No codec registered for {value_type.__name__}") from None


class UtcTimestamp(TypeDecorator[datetime]):
    """DATETIME column holding naive UTC instants at millisecond precision."""

    impl = DateTime
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "mysql":
            return dialect.type_descriptor(mysql.DATETIME(fsp=3))
        return dialect.type_descriptor(DateTime())

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return TIMESTAMP_CODEC.decode(TIMESTAMP_CODEC.encode(value))

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return TIMESTAMP_CODEC.decode(TIMESTAMP_CODEC.encode(value))


class JsonDocument(TypeDecorator[Any]):
    """TEXT column holding a JSON object.

    On MySQL the column is utf8mb4 whatever the table charset, so characters
    outside the Basic Multilingual Plane are stored unchanged.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "mysql":
            return dialect.type_descriptor(mysql.TEXT(charset="utf8mb4", collation="utf8mb4_bin"))
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        return DOCUMENT_CODEC.encode(value)

    def process_result_value(self, value: str | None, dialect: Dialect) -> Any:
        if value is None:
            return None
        document = DOCUMENT_CODEC.decode(value)
        if not isinstance(document, dict):
            raise DataCorruptionError(
                f"Stored document is not a JSON object: {value!r:.80}"
            )
        return document
