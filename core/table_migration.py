"""
Table Migration Orchestrator
============================

Replaces one warehouse table with the contents of one snapshot table as a
compensating transaction:

    START -> ABSENT | BACKED_UP -> CREATED -> TRANSFERRED -> COMMITTED

An existing destination table is renamed to ``<dest>_old`` before the new
table is created and only dropped once the transfer has committed. When
creation or transfer fails the new table is dropped and the backup renamed
back, so readers of the destination name see either the old rows or the
complete new rows.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from core.errors import (
    DataTransferError,
    MigrationError,
    RestoreError,
    TableCreateError,
)
from core.naming import is_valid_identifier
from core.schema import BackupState, MigrationJob, TableSchema
from core.transfer import BatchTransfer

logger = logging.getLogger(__name__)


class MigrationState(Enum):
    START = "start"
    ABSENT = "absent"
    BACKED_UP = "backed_up"
    CREATED = "created"
    TRANSFERRED = "transferred"
    COMMITTED = "committed"
    CREATE_FAILED = "create_failed"
    TRANSFER_FAILED = "transfer_failed"
    RESTORED = "restored"
    ROLLED_BACK = "rolled_back"


@dataclass
class TableMigrationResult:
    job: MigrationJob
    rows: int
    state: MigrationState
    history: List[MigrationState] = field(default_factory=list)
    backup: Optional[BackupState] = None


class TableMigration:
    """Migrates one snapshot table into the warehouse."""

    def __init__(self, source, destination, job: MigrationJob, transfer: Optional[BatchTransfer] = None):
        self.source = source
        self.destination = destination
        self.job = job
        self.transfer_engine = transfer or BatchTransfer()
        self.state = MigrationState.START
        self.history: List[MigrationState] = [MigrationState.START]
        self.backup = BackupState(job.destination_table, job.backup_table)
        self.schema: Optional[TableSchema] = None

    def _enter(self, state: MigrationState):
        logger.debug(f"{self.job.destination_table}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def run(self) -> TableMigrationResult:
        logger.info(f"Migrating table {self.job.table_name} for language {self.job.language_code}")

        dest = self.job.destination_table
        for name in (dest, self.backup.backup_table):
            if not is_valid_identifier(name):
                raise TableCreateError(dest, ValueError(f"invalid table name '{name}'"))

        self.schema = self.source.get_schema(self.job.table_name)

        self.check_and_back_up()
        self.create()
        rows = self.transfer()
        self.commit()

        return TableMigrationResult(self.job, rows, self.state, list(self.history), self.backup)

    # Forward steps

    def check_and_back_up(self):
        """Move an existing destination table out of the way."""
        dest = self.backup.destination_table
        backup = self.backup.backup_table

        try:
            exists = self.destination.table_exists(dest)
        except Exception as e:
            raise TableCreateError(dest, e) from e

        if not exists:
            self._enter(MigrationState.ABSENT)
            return

        try:
            self.destination.drop_table(backup, if_exists=True)
        except Exception as e:
            logger.warning(f"Could not drop stale backup table {backup}: {e}")

        try:
            self.destination.rename_table(dest, backup)
        except Exception as e:
            raise TableCreateError(dest, e) from e

        self.backup.existed_before = True
        self._enter(MigrationState.BACKED_UP)
        logger.info(f"Existing table renamed to {backup}")

    def create(self):
        dest = self.backup.destination_table
        try:
            self.destination.create_table(dest, self.schema)
        except Exception as e:
            self._enter(MigrationState.CREATE_FAILED)
            error = TableCreateError(dest, e, restored=self.backup.existed_before)
            if self.backup.existed_before:
                self.compensate(error, drop_new=False)
            else:
                self._drop_partial(dest)
            raise error from e
        self._enter(MigrationState.CREATED)

    def _drop_partial(self, dest: str):
        """Best-effort cleanup after a create with no backup; the create error wins."""
        try:
            self.destination.drop_table(dest, if_exists=True)
        except Exception as e:
            logger.warning(f"Could not drop partial table {dest}: {e}")
        self._enter(MigrationState.ROLLED_BACK)

    def transfer(self) -> int:
        try:
            rows = self.transfer_engine.transfer(
                self.source, self.destination, self.schema,
                self.job.table_name, self.backup.destination_table,
            )
        except DataTransferError as e:
            self._enter(MigrationState.TRANSFER_FAILED)
            self.compensate(e, drop_new=True)
            raise e.with_restore(self.backup.existed_before) from e.cause
        self._enter(MigrationState.TRANSFERRED)
        return rows

    def commit(self):
        """Drop the backup; a leftover backup is logged, never fatal."""
        if self.backup.existed_before:
            backup = self.backup.backup_table
            try:
                self.destination.drop_table(backup, if_exists=True)
                logger.info(f"Backup table {backup} dropped successfully")
            except Exception as e:
                logger.warning(f"Failed to drop backup table {backup}: {e}")
        self._enter(MigrationState.COMMITTED)

    # Compensation

    def compensate(self, cause: MigrationError, drop_new: bool):
        """
        Undo a failed create or transfer.

        Raises:
            RestoreError: the new table could not be dropped or the backup
                could not be renamed back; names both causes
        """
        dest = self.backup.destination_table
        backup = self.backup.backup_table
        try:
            if drop_new:
                self.destination.drop_table(dest, if_exists=True)
            if self.backup.existed_before:
                self.destination.rename_table(backup, dest)
        except Exception as restore_error:
            logger.error(f"Compensation for {dest} failed: {restore_error}")
            raise RestoreError(dest, cause, restore_error) from restore_error

        if self.backup.existed_before:
            self._enter(MigrationState.RESTORED)
            logger.info(f"Backup table {backup} restored to {dest}")
        else:
            self._enter(MigrationState.ROLLED_BACK)
