"""Persistence layer for job execution history and paused jobs."""

from jobledger.store import JobLedger, connect

__all__ = [
    "JobLedger",
    "connect",
]

__version__ = "0.1.0"
