# offline/bundle/layout.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from offline.catalog.sources import snapshot_entries, volume_entries
from offline.core.config import DEFAULT_TAG_SUFFIX

CONTAINERS_DIR = "containers"
VOLUMES_DIR = "volumes"
PROJECT_DIR = "project"

REQUIRED_DIRS = (CONTAINERS_DIR, VOLUMES_DIR, PROJECT_DIR)

COMPOSE_FILE_NAMES = (
    "docker-compose.yaml",
    "docker-compose.yml",
    "compose.yaml",
    "compose.yml",
)


def find_compose_file(project_dir: Path) -> Optional[Path]:
    for name in COMPOSE_FILE_NAMES:
        candidate = project_dir / name
        if candidate.is_file():
            return candidate
    return None


@dataclass
class BundleReport:
    root: Path
    missing: List[str] = field(default_factory=list)
    snapshots: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    volumes: List[str] = field(default_factory=list)
    compose_file: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return not self.missing

    def as_dict(self) -> dict:
        return {
            "root": str(self.root),
            "ok": self.ok,
            "missing": self.missing,
            "snapshots": self.snapshots,
            "images": self.images,
            "volumes": self.volumes,
            "compose_file": str(self.compose_file) if self.compose_file else None,
        }


def inspect_bundle(
    root: Path,
    *,
    project_prefix: Optional[str] = None,
    suffix: str = DEFAULT_TAG_SUFFIX,
) -> BundleReport:
    """
    Bundle layout written by the export step:

      <root>/containers/<container>.tar
      <root>/volumes/<container>_<sanitized destination>/
      <root>/project/<compose file and project files>
    """
    report = BundleReport(root=root)
    report.missing = [d for d in REQUIRED_DIRS if not (root / d).is_dir()]

    if (root / CONTAINERS_DIR).is_dir():
        for entry in snapshot_entries(
            root / CONTAINERS_DIR, suffix=suffix, project_prefix=project_prefix
        ):
            report.snapshots.append(entry.capture_name)
            report.images.append(entry.identifier)

    if (root / VOLUMES_DIR).is_dir():
        report.volumes = [e.identifier for e in volume_entries(root / VOLUMES_DIR)]

    if (root / PROJECT_DIR).is_dir():
        report.compose_file = find_compose_file(root / PROJECT_DIR)

    return report
