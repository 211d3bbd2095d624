"""
Source Locator: finds snapshot files and hands them to the dispatcher.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from core.errors import DiscoveryError, UnrecognizedFilenameError
from core.naming import NamingConvention
from core.schema import RunReport, SourceFile

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "*.sqlite"


class SourceLocator:
    """Discovers ``pattern`` files in ``directory`` and parses their language codes."""

    def __init__(
        self,
        directory: Union[str, Path],
        convention: Optional[NamingConvention] = None,
        pattern: str = DEFAULT_PATTERN,
    ):
        self.directory = Path(directory)
        self.convention = convention or NamingConvention()
        self.pattern = pattern
        self.rejected: List[UnrecognizedFilenameError] = []

    def discover(self) -> List[SourceFile]:
        """
        Returns:
            Snapshot files sorted by path

        Raises:
            DiscoveryError: directory missing or unreadable
        """
        if not self.directory.is_dir():
            raise DiscoveryError(f"Snapshot directory not found: {self.directory}",
                                 {'directory': str(self.directory)})
        try:
            paths = sorted(p for p in self.directory.glob(self.pattern) if p.is_file())
        except OSError as e:
            raise DiscoveryError(f"Failed to read directory {self.directory}: {e}",
                                 {'directory': str(self.directory)}) from e

        self.rejected = []
        files = []
        for path in paths:
            try:
                files.append(SourceFile(path, self.convention.parse(path)))
            except UnrecognizedFilenameError as e:
                logger.warning(f"Skipping {path}: {e}")
                self.rejected.append(e)

        logger.info(f"Found {len(files)} snapshot files in {self.directory}")
        return files

    def run(self, dispatcher) -> RunReport:
        """Discover snapshots and migrate them all."""
        files = self.discover()
        report = dispatcher.run(files)
        report.errors.extend(str(e) for e in self.rejected)
        return report
