#!/usr/bin/env python3
"""
Snapshot Migrator Error Hierarchy
Canonical exception classes for the migration engine.

Fatal errors (config, connection, discovery) stop the whole run before any
table is touched. Everything else is scoped to one table or one file.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    UNKNOWN = "UNKNOWN_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DISCOVERY_ERROR = "DISCOVERY_ERROR"
    UNRECOGNIZED_FILENAME = "UNRECOGNIZED_FILENAME"
    SCHEMA_READ_ERROR = "SCHEMA_READ_ERROR"
    TABLE_CREATE_ERROR = "TABLE_CREATE_ERROR"
    DATA_TRANSFER_ERROR = "DATA_TRANSFER_ERROR"
    RESTORE_ERROR = "RESTORE_ERROR"


FATAL_CODES = frozenset({
    ErrorCode.CONFIG_ERROR,
    ErrorCode.CONNECTION_ERROR,
    ErrorCode.DISCOVERY_ERROR,
})


class MigrationError(Exception):
    """Base class for all migrator exceptions"""
    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    @property
    def is_fatal(self) -> bool:
        return self.code in FATAL_CODES


class ConfigError(MigrationError):
    """Raised when the configuration cannot be read or is incomplete"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, ErrorCode.CONFIG_ERROR, details)


class ConnectionError(MigrationError):
    """Raised when the destination store cannot be reached"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, ErrorCode.CONNECTION_ERROR, details)


class DiscoveryError(MigrationError):
    """Raised when source snapshot files cannot be enumerated"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, ErrorCode.DISCOVERY_ERROR, details)


class UnrecognizedFilenameError(MigrationError):
    """Raised when a snapshot filename does not follow the naming convention"""
    def __init__(self, filename: str, reason: str = "no language code"):
        super().__init__(f"Unrecognized snapshot filename '{filename}': {reason}",
                         ErrorCode.UNRECOGNIZED_FILENAME, {'filename': filename})
        self.filename = filename


class SchemaReadError(MigrationError):
    """Raised when a source table schema cannot be read"""
    def __init__(self, table: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to read schema for {table}: {message}",
                         ErrorCode.SCHEMA_READ_ERROR, {'table': table})
        self.table = table
        self.cause = cause


class TableCreateError(MigrationError):
    """Raised when the destination table cannot be prepared or created"""
    def __init__(self, table: str, cause: BaseException, restored: bool = False):
        message = f"Failed to create table {table}: {cause}"
        if restored:
            message += "; backup restored"
        super().__init__(message, ErrorCode.TABLE_CREATE_ERROR,
                         {'table': table, 'restored': restored})
        self.table = table
        self.cause = cause
        self.restored = restored


class DataTransferError(MigrationError):
    """Raised when copying rows into the destination table fails"""
    def __init__(self, table: str, cause: BaseException, restored: bool = False):
        message = f"Failed to transfer data into {table}: {cause}"
        if restored:
            message += "; backup restored"
        super().__init__(message, ErrorCode.DATA_TRANSFER_ERROR,
                         {'table': table, 'restored': restored})
        self.table = table
        self.cause = cause
        self.restored = restored

    def with_restore(self, restored: bool) -> 'DataTransferError':
        """Copy of this error annotated with the outcome of the compensation"""
        return DataTransferError(self.table, self.cause, restored=restored)


class RestoreError(MigrationError):
    """
    Raised when a compensating action fails.

    Always carries the error that triggered the compensation: the old table may
    be gone and the new one failed, so both causes are reported together.
    """
    def __init__(self, table: str, cause: MigrationError, restore_cause: BaseException):
        super().__init__(
            f"Failed to restore {table} after error: original error: {cause}, "
            f"restore error: {restore_cause}",
            ErrorCode.RESTORE_ERROR,
            {'table': table, 'original_code': cause.code.value},
        )
        self.table = table
        self.cause = cause
        self.restore_cause = restore_cause
