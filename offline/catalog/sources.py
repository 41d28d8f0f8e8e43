# offline/catalog/sources.py
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from offline.catalog.model import ArtifactKind, Catalog, CatalogEntry
from offline.core.config import DEFAULT_TAG_SUFFIX
from offline.core.errors import CatalogUnavailableError

IMAGES_NONE = "none"
IMAGES_ENGINE = "docker"
IMAGES_FILE = "file"
IMAGES_BUNDLE = "bundle"

IMAGE_SOURCES = (IMAGES_NONE, IMAGES_ENGINE, IMAGES_FILE, IMAGES_BUNDLE)


@dataclass(frozen=True)
class CatalogSource:
    """
    Where the catalog comes from:

      images=docker  -> `docker images` on this host
      images=file    -> images_path is a listing, one repo:tag per line
      images=bundle  -> images_path is a bundle root with containers/*.tar
      images=none    -> no images (volumes only)

    volumes_root, when set, is a directory of capture subdirectories.
    """

    images: str = IMAGES_NONE
    images_path: Optional[Path] = None
    volumes_root: Optional[Path] = None
    project_prefix: Optional[str] = None
    suffix: str = DEFAULT_TAG_SUFFIX
    docker_bin: str = "docker"


def list_engine_images(docker_bin: str = "docker") -> List[str]:
    cmd = [docker_bin, "images", "--format", "{{.Repository}}:{{.Tag}}"]
    try:
        r = subprocess.run(cmd, check=False, capture_output=True, text=True)
    except OSError as exc:
        raise CatalogUnavailableError(f"Cannot run {docker_bin!r}: {exc}") from exc

    if r.returncode != 0:
        output = ((r.stderr or "") + (r.stdout or "")).strip()
        raise CatalogUnavailableError(
            f"'{' '.join(cmd)}' failed (exit={r.returncode}): {output or 'no output'}"
        )
    return [line.strip() for line in (r.stdout or "").splitlines() if line.strip()]


def read_listing_file(path: Path) -> List[str]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogUnavailableError(f"Cannot read image listing {path}: {exc}") from exc

    out: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            out.append(line)
    return out


def _require_dir(path: Path, what: str) -> Path:
    if not path.is_dir():
        raise CatalogUnavailableError(f"{what} not found: {path}")
    return path


def _strip_prefix(repository: str, prefix: Optional[str]) -> str:
    if prefix and repository.startswith(f"{prefix}_"):
        return repository[len(prefix) + 1 :]
    return repository


def image_entries(
    identifiers: Iterable[str], *, suffix: str, project_prefix: Optional[str] = None
) -> List[CatalogEntry]:
    """Keep only identifiers tagged with the offline marker."""
    marker = f":{suffix}"
    entries: List[CatalogEntry] = []
    for ident in identifiers:
        if not ident.endswith(marker) or ident.startswith("<none>"):
            continue
        repository = ident[: -len(marker)]
        if not repository:
            continue
        entries.append(
            CatalogEntry(
                kind=ArtifactKind.IMAGE,
                identifier=ident,
                capture_name=_strip_prefix(repository, project_prefix),
            )
        )
    return entries


def snapshot_entries(
    containers_dir: Path, *, suffix: str, project_prefix: Optional[str] = None
) -> List[CatalogEntry]:
    """
    Container snapshots are tagged on import as {prefix}_{name}:{suffix}
    (or {name}:{suffix} without a prefix), name being the tar file stem.
    """
    _require_dir(containers_dir, "Container snapshot directory")

    entries: List[CatalogEntry] = []
    for tar in sorted(containers_dir.glob("*.tar")):
        name = tar.stem
        repository = f"{project_prefix}_{name}" if project_prefix else name
        entries.append(
            CatalogEntry(
                kind=ArtifactKind.IMAGE,
                identifier=f"{repository}:{suffix}",
                capture_name=name,
                path=tar,
            )
        )
    return entries


def volume_entries(volumes_root: Path) -> List[CatalogEntry]:
    _require_dir(volumes_root, "Volume capture root")

    return [
        CatalogEntry(
            kind=ArtifactKind.VOLUME,
            identifier=d.name,
            capture_name=d.name,
            path=d,
        )
        for d in sorted(volumes_root.iterdir())
        if d.is_dir()
    ]


def build_catalog(source: CatalogSource) -> Catalog:
    """
    Enumerate every artifact the source exposes. An empty result is a valid
    catalog; an unreachable source raises CatalogUnavailableError.
    """
    entries: List[CatalogEntry] = []
    prefix = source.project_prefix

    if source.images == IMAGES_ENGINE:
        entries += image_entries(
            list_engine_images(source.docker_bin),
            suffix=source.suffix,
            project_prefix=prefix,
        )
    elif source.images == IMAGES_FILE:
        if source.images_path is None:
            raise CatalogUnavailableError("Image listing file was not given")
        entries += image_entries(
            read_listing_file(source.images_path),
            suffix=source.suffix,
            project_prefix=prefix,
        )
    elif source.images == IMAGES_BUNDLE:
        if source.images_path is None:
            raise CatalogUnavailableError("Bundle path was not given")
        entries += snapshot_entries(
            source.images_path / "containers",
            suffix=source.suffix,
            project_prefix=prefix,
        )
    elif source.images != IMAGES_NONE:
        raise CatalogUnavailableError(f"Unknown image source: {source.images!r}")

    if source.volumes_root is not None:
        entries += volume_entries(source.volumes_root)

    return Catalog.of(entries, suffix=source.suffix)
