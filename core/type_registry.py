import logging
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class IRType(Enum):
    TEXT = "TEXT"
    BIGINT = "BIGINT"
    DOUBLE = "DOUBLE"
    BLOB = "BLOB"
    TIMESTAMP = "TIMESTAMP"


# Columns whose values are modification timestamps whatever the snapshot declares.
TIMESTAMP_COLUMNS = frozenset({'lastmodified'})


class TypeRegistry:
    # Declared snapshot type (uppercased) -> warehouse type.
    # Anything missing falls back to TEXT.
    SOURCE_TO_IR: Dict[str, IRType] = {
        'TEXT': IRType.TEXT,
        'INTEGER': IRType.BIGINT,
        'REAL': IRType.DOUBLE,
        'BLOB': IRType.BLOB,
        'DATETIME': IRType.TIMESTAMP,
        'TIMESTAMP': IRType.TIMESTAMP,
    }

    DEFAULT_TYPE = IRType.TEXT

    @staticmethod
    def map_type(source_type: Optional[str]) -> str:
        """Map a declared SQLite type to its warehouse type"""
        key = (source_type or '').strip().upper()
        ir_type = TypeRegistry.SOURCE_TO_IR.get(key)
        if ir_type is None:
            logger.debug(f"Unmapped source type '{source_type}', using {TypeRegistry.DEFAULT_TYPE.value}")
            ir_type = TypeRegistry.DEFAULT_TYPE
        return ir_type.value

    @staticmethod
    def map_column(source_type: Optional[str], column_name: str = '') -> str:
        """Map a column to its warehouse type, honouring reserved timestamp column names"""
        if (column_name or '').lower() in TIMESTAMP_COLUMNS:
            return IRType.TIMESTAMP.value
        return TypeRegistry.map_type(source_type)
