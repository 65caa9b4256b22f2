from jobledger.models.base import Base
from jobledger.models.execution import Execution
from jobledger.models.paused_job import PausedJob
from jobledger.models.schema_evolution import SchemaEvolution

__all__ = [
    "Base",
    "Execution",
    "PausedJob",
    "SchemaEvolution",
]
