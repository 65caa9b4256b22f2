from jobledger.schemas.execution import ExecutionRecord, ExecutionStat

__all__ = [
    "ExecutionRecord",
    "ExecutionStat",
]
