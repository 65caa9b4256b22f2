"""
Ledger exceptions.

Every failure of the persistence layer surfaces to the immediate caller as
one of these types, chained to the driver exception that caused it:

- ConfigurationError: required settings are missing or invalid
- ConnectivityError / OperationTimeoutError: retriable, the caller decides backoff
- MigrationError: the schema could not be brought up to date
- DataCorruptionError: stored data the ledger itself never writes
- DuplicateExecutionError: an execution id was logged twice
"""


class LedgerError(Exception):
    """Base exception for all ledger errors."""
    pass


class ConfigurationError(LedgerError):
    """Raised when required configuration is missing or malformed."""
    pass


class RetriableError(LedgerError):
    """Base for failures that may succeed if the caller retries later."""
    pass


class ConnectivityError(RetriableError):
    """Raised when the database backend cannot be reached or drops the connection."""
    pass


class OperationTimeoutError(RetriableError):
    """Raised when waiting for a pooled connection or a query exceeds its timeout."""

    def __init__(self, timeout: float | None, operation: str = "operation"):
        self.timeout = timeout
        self.operation = operation
        if timeout is None:
            super().__init__(f"{operation} timed out")
        else:
            super().__init__(f"{operation} timed out after {timeout}s")


class MigrationError(LedgerError):
    """
    Raised when the schema cannot be migrated.

    `version` is the schema version whose step failed, or None when the
    failure happened outside a step (lock acquisition, version check).
    """

    def __init__(self, message: str, version: int | None = None):
        self.version = version
        super().__init__(message)


class DataCorruptionError(LedgerError):
    """Raised when a stored value cannot be decoded."""
    pass


class DuplicateExecutionError(LedgerError):
    """Raised when an execution with the same id has already been logged."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution already logged: {execution_id}")
