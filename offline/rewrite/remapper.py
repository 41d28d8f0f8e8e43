# offline/rewrite/remapper.py
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Sequence

from offline.catalog.model import Catalog, CatalogEntry
from offline.core.config import VolumeRule
from offline.core.naming import DELIMITER, capture_identifier, sanitize
from offline.manifest.mounts import MountSpec

SOURCE_PATH = "path"
SOURCE_VOLUME = "volume"

RULE_POLICY = "policy"
RULE_CATALOG = "catalog"
RULE_BASENAME = "basename"

SKIP_SHAPE = "skipped: unsupported shape"
SKIP_ANONYMOUS = "skipped: anonymous volume"
SKIP_MALFORMED = "skipped: missing or relative destination"
SKIP_SOURCE = "skipped: unsupported mount source"
SKIP_NO_NAME = "skipped: cannot derive a name from source"
ALREADY_RESTORED = "already under restore root"
NO_CAPTURE = "no volume capture"

# tmpfs/npipe style markers are valid compose sources but never captured data
NON_DATA_SOURCES = frozenset({"tmpfs", "npipe"})

_VOLUME_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def classify_source(source: str) -> Optional[str]:
    if source.startswith("$"):
        # interpolated, the real location is unknown here
        return None
    if source.startswith(("/", ".", "~")) or "/" in source:
        return SOURCE_PATH
    if source in NON_DATA_SOURCES:
        return None
    if _VOLUME_NAME.match(source):
        return SOURCE_VOLUME
    return None


def is_under(path: str, root: str) -> bool:
    root = root.rstrip("/") or "/"
    if root == "/":
        return path.startswith("/")
    return path == root or path.startswith(root + "/")


def simple_name(source: str, kind: str) -> Optional[str]:
    """
    Name a source gets under the restore root in the simple form:

      named volume     db_data            -> db_data
      absolute path    /srv/app/uploads   -> uploads
      relative path    ./data/api         -> data

    A relative bind source is shipped with its top-level project
    directory, so that directory is what lands under the root.
    """
    if kind == SOURCE_VOLUME:
        return source
    parts = [p for p in PurePosixPath(source).parts if p not in ("/", ".", "..", "~")]
    if not parts:
        return None
    if source.startswith(("/", "~")):
        return parts[-1]
    return parts[0]


@dataclass(frozen=True)
class RemapResult:
    mount: object  # MountSpec, or the untouched opaque entry
    changed: bool = False
    rule: Optional[str] = None
    reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return bool(self.reason and self.reason.startswith("skipped"))


class PathRemapper:
    """
    Move mount sources under a restore root.

    Priority: operator policy rules, then the catalog of volume captures
    (restore_root/<capture identifier>), then, when enabled, the simple
    basename form. Sources already under the root are left alone.
    """

    def __init__(
        self,
        restore_root: str,
        catalog: Optional[Catalog] = None,
        rules: Sequence[VolumeRule] = (),
        simple_fallback: bool = True,
    ) -> None:
        self.restore_root = restore_root.rstrip("/") or "/"
        self.catalog = catalog
        self.rules = tuple(rules)
        self.simple_fallback = simple_fallback

    def _join(self, name: str) -> str:
        return str(PurePosixPath(self.restore_root) / name)

    def find_capture(self, service_name: str, destination: str) -> Optional[CatalogEntry]:
        if self.catalog is None:
            return None

        exact = self.catalog.volume(capture_identifier(service_name, destination))
        if exact is not None:
            return exact

        # exports name captures after the container: proj-api-1_app_storage
        tail = DELIMITER + sanitize(destination)
        for entry in self.catalog.volumes():
            ident = entry.identifier
            if ident.endswith(tail) and service_name in ident[: -len(tail)]:
                return entry
        return None

    def _policy_target(self, identifier: str) -> Optional[str]:
        for rule in self.rules:
            if rule.match in identifier:
                return rule.target
        return None

    def remap(self, mount: object, service_name: str) -> RemapResult:
        if not isinstance(mount, MountSpec):
            return RemapResult(mount, reason=SKIP_SHAPE)
        if mount.source is None:
            return RemapResult(mount, reason=SKIP_ANONYMOUS)
        if not mount.is_well_formed:
            return RemapResult(mount, reason=SKIP_MALFORMED)

        source = str(mount.source)
        kind = classify_source(source)
        if kind is None:
            return RemapResult(mount, reason=SKIP_SOURCE)

        if kind == SOURCE_PATH and is_under(source, self.restore_root):
            return RemapResult(mount, reason=ALREADY_RESTORED)

        destination = str(mount.destination)
        capture = self.find_capture(service_name, destination)
        identifier = (
            capture.identifier
            if capture is not None
            else capture_identifier(service_name, destination)
        )

        target = self._policy_target(identifier)
        if target is not None:
            return self._moved(mount, self._join(target), RULE_POLICY)

        if capture is not None:
            return self._moved(mount, self._join(capture.identifier), RULE_CATALOG)

        if not self.simple_fallback:
            return RemapResult(mount, reason=NO_CAPTURE)

        name = simple_name(source, kind)
        if name is None:
            return RemapResult(mount, reason=SKIP_NO_NAME)
        return self._moved(mount, self._join(name), RULE_BASENAME)

    def _moved(self, mount: MountSpec, new_source: str, rule: str) -> RemapResult:
        if new_source == mount.source:
            return RemapResult(mount, rule=rule, reason=ALREADY_RESTORED)
        return RemapResult(mount.with_source(new_source), changed=True, rule=rule)


def remap(
    mount: MountSpec,
    service_name: str,
    restore_root: str,
    catalog: Optional[Catalog] = None,
    rules: Sequence[VolumeRule] = (),
) -> MountSpec:
    """Remapped mount, or the same mount when it is skipped or already restored."""
    return PathRemapper(restore_root, catalog, rules).remap(mount, service_name).mount  # type: ignore[return-value]
