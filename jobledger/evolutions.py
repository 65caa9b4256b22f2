"""
Released schema evolutions.

The position of a step in EVOLUTIONS is its schema version (the first step
is version 1). Tables here are frozen snapshots of the schema each step
creates, independent from the ORM models in jobledger.models,
which only describe the latest shape. Append new steps at the end; never
edit or reorder released ones.
"""

from sqlalchemy import CHAR, Boolean, Column, Index, MetaData, String, Table

from jobledger.core.codecs import JsonDocument, UtcTimestamp
from jobledger.core.migrations import CreateIndex, CreateTable, SchemaStep

metadata = MetaData()

_MYSQL_TABLE_OPTIONS = {"mysql_engine": "InnoDB", "mysql_charset": "utf8mb3"}

# Version 1

_executions_v1 = Table(
    "executions",
    metadata,
    Column("id", CHAR(36), primary_key=True),
    Column("job", String(1000), nullable=False),
    Column("start_time", UtcTimestamp(), nullable=False),
    Column("end_time", UtcTimestamp(), nullable=False),
    Column("context", JsonDocument(), nullable=False),
    Column("success", Boolean(), nullable=False),
    **_MYSQL_TABLE_OPTIONS,
)

_paused_jobs_v1 = Table(
    "paused_jobs",
    metadata,
    Column("id", String(1000), primary_key=True),
    **_MYSQL_TABLE_OPTIONS,
)

EVOLUTIONS: tuple[SchemaStep, ...] = (
    SchemaStep(
        name="executions_and_paused_jobs",
        operations=(
            CreateTable(_executions_v1),
            CreateIndex(Index("execution_by_job", _executions_v1.c.job)),
            CreateIndex(Index("execution_by_start_time", _executions_v1.c.start_time)),
            CreateTable(_paused_jobs_v1),
        ),
    ),
)
