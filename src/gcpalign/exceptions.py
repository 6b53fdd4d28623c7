from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Union


class GCPAlignError(Exception):
    """Base class for gcpalign faults."""


class ConfigError(GCPAlignError, ValueError):
    """Configuration is not usable. Carries every fault found, not just the first."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("Configuration not valid:\n  " + "\n  ".join(self.errors))


class ParseError(GCPAlignError, ValueError):
    """A file could not be parsed."""

    def __init__(self, path: Union[str, Path], message: str, line: Optional[int] = None):
        self.path = Path(path)
        self.line = line
        where = f"{self.path}:{line}" if line is not None else f"{self.path}"
        super().__init__(f"{where}: {message}")
