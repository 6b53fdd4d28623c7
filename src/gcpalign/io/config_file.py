from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from gcpalign.exceptions import ParseError


def read_config_file(path: Union[str, Path]) -> Dict[str, str]:
    """
    Reads `key = value` lines. Blank lines and `#` comments are skipped; a later
    assignment of the same key wins.
    """
    path = Path(path)
    values: Dict[str, str] = {}
    with path.open("r", encoding="utf-8") as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            key = key.strip()
            if not sep or not key:
                raise ParseError(path, f"expected 'key = value', got {line!r}", line=lineno)
            values[key] = value.strip()
    return values


def write_config_file(
    values: Mapping[str, str],
    path: Union[str, Path],
    descriptions: Optional[Mapping[str, str]] = None,
) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    descriptions = descriptions or {}
    chunks = []
    for key, value in values.items():
        desc = descriptions.get(key)
        comment = "".join(f"# {line}".rstrip() + "\n" for line in desc.splitlines()) if desc else ""
        chunks.append(f"{comment}{key} = {value}\n")
    path.write_text("\n".join(chunks), encoding="utf-8")
