#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Snapshot Migrator Core Package
Exports the migration engine components for clean imports
"""

from .errors import (
    ErrorCode,
    MigrationError,
    ConfigError,
    ConnectionError,
    DiscoveryError,
    UnrecognizedFilenameError,
    SchemaReadError,
    TableCreateError,
    DataTransferError,
    RestoreError,
)
from .schema import SourceFile, TableSchema, MigrationJob, FileMigrationResult, RunReport
from .naming import NamingConvention
from .type_registry import TypeRegistry, IRType
from .transfer import BatchTransfer, BATCH_SIZE
from .table_migration import TableMigration, MigrationState
from .worker_pool import BoundedWorkerPool
from .locator import SourceLocator

__version__ = "1.0.0"

__all__ = [
    'ErrorCode',
    'MigrationError',
    'ConfigError',
    'ConnectionError',
    'DiscoveryError',
    'UnrecognizedFilenameError',
    'SchemaReadError',
    'TableCreateError',
    'DataTransferError',
    'RestoreError',
    'SourceFile',
    'TableSchema',
    'MigrationJob',
    'FileMigrationResult',
    'RunReport',
    'NamingConvention',
    'TypeRegistry',
    'IRType',
    'BatchTransfer',
    'BATCH_SIZE',
    'TableMigration',
    'MigrationState',
    'BoundedWorkerPool',
    'SourceLocator',
]
