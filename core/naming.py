"""
Naming conventions for snapshot files and warehouse tables.

Snapshot files are named ``TranslationData.sqlite_<code>.sqlite``; warehouse
tables are named ``<code>_<table>``.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from core.errors import UnrecognizedFilenameError

# MySQL identifier limit
MAX_IDENTIFIER_LENGTH = 64

SOURCE_TABLE_PREFIX = "sqlite_"
BACKUP_SUFFIX = "_old"

_IDENTIFIER_RE = re.compile(r'^[A-Za-z0-9_]+$')


def is_valid_identifier(name: str) -> bool:
    """Only letters, digits and underscores, 1..64 characters."""
    return bool(name) and len(name) <= MAX_IDENTIFIER_LENGTH and bool(_IDENTIFIER_RE.match(name))


@dataclass(frozen=True)
class NamingConvention:
    """
    Parses a language code out of a snapshot filename.

    The prefix and the suffix are each stripped when present, so
    ``TranslationData.sqlite_en.sqlite`` and ``en_US.sqlite`` yield ``en`` and
    ``en_US``. Only when nothing is left and ``fallback`` is enabled is the part
    of the base name before the first underscore used. An empty or invalid
    code is rejected with UnrecognizedFilenameError.
    """
    prefix: str = "TranslationData.sqlite_"
    suffix: str = ".sqlite"
    fallback: bool = True

    def parse(self, path: Union[str, Path]) -> str:
        base = Path(path).name

        code = base
        if self.prefix and code.startswith(self.prefix):
            code = code[len(self.prefix):]
        if self.suffix and code.endswith(self.suffix):
            code = code[:-len(self.suffix)]

        if not code and self.fallback and '_' in base:
            code = base.split('_', 1)[0]

        if not code:
            raise UnrecognizedFilenameError(base)
        if not is_valid_identifier(code):
            raise UnrecognizedFilenameError(base, f"invalid language code '{code}'")
        return code


def destination_table_name(language_code: str, table_name: str) -> str:
    """``en`` + ``sqlite_nouns`` -> ``en_nouns``"""
    stripped = table_name[len(SOURCE_TABLE_PREFIX):] if table_name.startswith(SOURCE_TABLE_PREFIX) else table_name
    return f"{language_code}_{stripped}"


def backup_table_name(destination_table: str) -> str:
    return f"{destination_table}{BACKUP_SUFFIX}"
