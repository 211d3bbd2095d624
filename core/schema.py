"""
Data model for one migration run.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from core.naming import backup_table_name, destination_table_name
from core.type_registry import TypeRegistry


@dataclass(frozen=True)
class SourceFile:
    """A discovered snapshot and the language it holds"""
    path: Path
    language_code: str


@dataclass(frozen=True)
class TableSchema:
    """Column names and declared types in physical column order"""
    column_names: Tuple[str, ...]
    column_types: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, 'column_names', tuple(self.column_names))
        object.__setattr__(self, 'column_types', tuple(self.column_types))
        if len(self.column_names) != len(self.column_types):
            raise ValueError(
                f"Schema mismatch: {len(self.column_names)} names vs {len(self.column_types)} types"
            )

    def __len__(self) -> int:
        return len(self.column_names)

    def destination_columns(self) -> List[Tuple[str, str]]:
        """(name, warehouse type) pairs in column order"""
        return [
            (name, TypeRegistry.map_column(col_type, name))
            for name, col_type in zip(self.column_names, self.column_types)
        ]


@dataclass(frozen=True)
class MigrationJob:
    language_code: str
    table_name: str

    @property
    def destination_table(self) -> str:
        return destination_table_name(self.language_code, self.table_name)

    @property
    def backup_table(self) -> str:
        return backup_table_name(self.destination_table)


@dataclass
class BackupState:
    destination_table: str
    backup_table: str
    existed_before: bool = False


@dataclass
class FileMigrationResult:
    source: SourceFile
    tables: List[str] = field(default_factory=list)
    rows: int = 0
    errors: List[Exception] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class RunReport:
    """Totals and collected errors for one invocation"""
    files: List[FileMigrationResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def tables_migrated(self) -> int:
        return sum(len(f.tables) for f in self.files)

    @property
    def rows_migrated(self) -> int:
        return sum(f.rows for f in self.files)

    @property
    def files_failed(self) -> int:
        return sum(1 for f in self.files if not f.success)

    def to_dict(self) -> dict:
        return {
            "files": len(self.files),
            "files_failed": self.files_failed,
            "tables_migrated": self.tables_migrated,
            "rows_migrated": self.rows_migrated,
            "errors": list(self.errors),
            "success": not self.errors,
        }
