# offline/catalog/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from offline.core.config import DEFAULT_TAG_SUFFIX


class ArtifactKind(str, Enum):
    IMAGE = "image"
    VOLUME = "volume-snapshot"


@dataclass(frozen=True)
class CatalogEntry:
    kind: ArtifactKind
    identifier: str  # e.g. dify_test_api-1:offline, or a volume capture directory name
    capture_name: str  # name at capture time, e.g. dify_test_api-1
    path: Optional[Path] = None  # on-disk capture path (volumes and snapshot tars)

    @property
    def repository(self) -> str:
        """Identifier without its tag (images only; volumes return the identifier)."""
        if self.kind is ArtifactKind.IMAGE:
            last_slash = self.identifier.rfind("/")
            last_colon = self.identifier.rfind(":")
            if last_colon > last_slash:
                return self.identifier[:last_colon]
        return self.identifier


@dataclass(frozen=True)
class Catalog:
    """
    Read-only index of offline artifacts. Built once per run; entries are
    sorted by identifier so every lookup is deterministic.
    """

    entries: Tuple[CatalogEntry, ...] = field(default_factory=tuple)
    suffix: str = DEFAULT_TAG_SUFFIX

    @classmethod
    def of(cls, entries: Iterable[CatalogEntry], suffix: str = DEFAULT_TAG_SUFFIX) -> "Catalog":
        unique = {(e.kind, e.identifier): e for e in entries}
        ordered = sorted(unique.values(), key=lambda e: (e.kind.value, e.identifier))
        return cls(entries=tuple(ordered), suffix=suffix)

    @property
    def marker(self) -> str:
        return f":{self.suffix}"

    def images(self) -> List[CatalogEntry]:
        return [e for e in self.entries if e.kind is ArtifactKind.IMAGE]

    def volumes(self) -> List[CatalogEntry]:
        return [e for e in self.entries if e.kind is ArtifactKind.VOLUME]

    def image(self, identifier: str) -> Optional[CatalogEntry]:
        for e in self.images():
            if e.identifier == identifier:
                return e
        return None

    def volume(self, identifier: str) -> Optional[CatalogEntry]:
        for e in self.volumes():
            if e.identifier == identifier:
                return e
        return None

    def is_empty(self) -> bool:
        return not self.entries

    def __len__(self) -> int:
        return len(self.entries)
