from jobledger.services.execution_log import ExecutionLogStore
from jobledger.services.job_pause import JobPauseStore

__all__ = [
    "ExecutionLogStore",
    "JobPauseStore",
]
