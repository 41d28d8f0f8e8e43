# offline/manifest/mounts.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional


def split_short_syntax(entry: str) -> List[str]:
    """
    Split "source:destination[:options]" on ":" while keeping
    interpolations such as ${DATA_DIR:-./data} in one piece.
    """
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    prev = ""
    for ch in entry:
        if ch == "{" and prev == "$":
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
        if ch == ":" and not depth:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
        prev = ch
    parts.append("".join(buf))
    return parts


@dataclass(frozen=True)
class MountSpec:
    """
    A short-syntax mount entry `source:destination[:options]`.

    `source` is None for anonymous volumes ("/data"). A spec is well formed
    only when it has a source and its destination is an absolute path.
    """

    source: Optional[str]
    destination: Optional[str]
    options: Optional[str] = None

    @classmethod
    def parse(cls, entry: str) -> "MountSpec":
        parts = split_short_syntax(str(entry).strip())
        if len(parts) == 1:
            return cls(source=None, destination=parts[0] or None)
        source = parts[0] or None
        destination = parts[1] or None
        options = ":".join(parts[2:]) if len(parts) > 2 else None
        return cls(source=source, destination=destination, options=options or None)

    @property
    def is_well_formed(self) -> bool:
        return bool(self.source) and bool(self.destination) and str(
            self.destination
        ).startswith("/")

    def with_source(self, source: str) -> "MountSpec":
        return replace(self, source=source)

    def __str__(self) -> str:
        if self.source is None:
            return self.destination or ""
        out = f"{self.source}:{self.destination or ''}"
        if self.options:
            out += f":{self.options}"
        return out
