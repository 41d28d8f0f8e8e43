# offline/rewrite/rewriter.py
from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from offline.catalog.model import Catalog
from offline.core.config import VolumeRule
from offline.manifest.model import Manifest, ServiceDefinition
from offline.manifest.mounts import MountSpec
from offline.resolve.resolver import REASON_EMPTY_CATALOG, REASON_NO_IMAGE, ReferenceResolver
from offline.rewrite.changelog import ChangeLog, ChangeRecord, Outcome
from offline.rewrite.remapper import NO_CAPTURE, PathRemapper

IMAGE_FIELD = "image"

_MOUNT_FIELD = re.compile(r"^volumes\[(\d+)\]$")


def mount_field(index: int) -> str:
    return f"volumes[{index}]"


def _text(entry: object) -> str:
    if isinstance(entry, (str, MountSpec)):
        return str(entry)
    if isinstance(entry, dict):
        return repr(dict(entry))
    return repr(entry)


@dataclass(frozen=True)
class ServicePlan:
    """Edits computed for one service, applied later in manifest order."""

    service: str
    image: Optional[str]
    mounts: Tuple[Tuple[int, MountSpec], ...]
    records: Tuple[ChangeRecord, ...]


class ManifestRewriter:
    """
    Point every service at its offline image and restored volume data.

    Only `image` and short-syntax `volumes` entries are touched. Failures are
    recorded in the ChangeLog, never raised: partial success is the normal case.
    """

    def __init__(
        self,
        catalog: Catalog,
        restore_root: str,
        project_prefix: Optional[str] = None,
        *,
        volume_rules: Sequence[VolumeRule] = (),
        simple_mounts: bool = False,
        workers: int = 1,
    ) -> None:
        self.catalog = catalog
        self.resolver = ReferenceResolver(catalog, project_prefix)
        self.remapper = PathRemapper(
            restore_root,
            catalog=catalog,
            rules=volume_rules,
            simple_fallback=simple_mounts,
        )
        self.workers = max(1, int(workers))

    def _plan_image(self, service: ServiceDefinition) -> Tuple[Optional[str], ChangeRecord]:
        before = service.image
        res = self.resolver.resolve(service.name, before)

        if res.entry is None:
            outcome = Outcome.SKIPPED if res.reason == REASON_NO_IMAGE else Outcome.NOT_FOUND
            return None, ChangeRecord(
                service=service.name,
                field=IMAGE_FIELD,
                before=before,
                after=before,
                outcome=outcome,
                reason=res.reason,
                attempts=res.attempts,
            )

        after = res.entry.identifier
        changed = after != before
        return (after if changed else None), ChangeRecord(
            service=service.name,
            field=IMAGE_FIELD,
            before=before,
            after=after,
            outcome=Outcome.APPLIED if changed else Outcome.UNCHANGED,
            strategy=res.strategy,
            reason=None if changed else "already offline",
            attempts=res.attempts,
        )

    def _plan_mount(
        self, service: ServiceDefinition, index: int, entry: object
    ) -> Tuple[Optional[MountSpec], ChangeRecord]:
        result = self.remapper.remap(entry, service.name)
        before = _text(entry)

        if result.changed:
            return result.mount, ChangeRecord(  # type: ignore[return-value]
                service=service.name,
                field=mount_field(index),
                before=before,
                after=_text(result.mount),
                outcome=Outcome.APPLIED,
                strategy=result.rule,
            )

        if result.skipped:
            outcome = Outcome.SKIPPED
        elif result.reason == NO_CAPTURE:
            outcome = Outcome.NOT_FOUND
        else:
            outcome = Outcome.UNCHANGED

        reason = result.reason
        if reason == NO_CAPTURE and not self.catalog.volumes():
            reason = REASON_EMPTY_CATALOG

        return None, ChangeRecord(
            service=service.name,
            field=mount_field(index),
            before=before,
            after=before,
            outcome=outcome,
            strategy=result.rule,
            reason=reason,
        )

    def plan(self, service: ServiceDefinition) -> ServicePlan:
        """Read-only: safe to run for several services at once."""
        image, image_record = self._plan_image(service)
        records: List[ChangeRecord] = [image_record]
        mounts: List[Tuple[int, MountSpec]] = []

        for index, entry in enumerate(service.mount_entries()):
            new_mount, record = self._plan_mount(service, index, entry)
            records.append(record)
            if new_mount is not None:
                mounts.append((index, new_mount))

        return ServicePlan(service.name, image, tuple(mounts), tuple(records))

    def _plans(self, services: List[ServiceDefinition]) -> List[ServicePlan]:
        if self.workers > 1 and len(services) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                # map() keeps input order whatever the completion order
                return list(pool.map(self.plan, services))
        return [self.plan(s) for s in services]

    def rewrite(self, manifest: Manifest) -> Tuple[Manifest, ChangeLog]:
        out = manifest.copy()
        services = list(out)
        changelog = ChangeLog()

        for service, plan in zip(services, self._plans(services)):
            if plan.image is not None:
                service.set_image(plan.image)
            for index, mount in plan.mounts:
                service.set_mount(index, mount)
            changelog.extend(plan.records)

        return out, changelog


def rewrite(
    manifest: Manifest,
    catalog: Catalog,
    restore_root: str,
    project_prefix: Optional[str] = None,
    *,
    volume_rules: Sequence[VolumeRule] = (),
    simple_mounts: bool = False,
    workers: int = 1,
) -> Tuple[Manifest, ChangeLog]:
    rewriter = ManifestRewriter(
        catalog,
        restore_root,
        project_prefix,
        volume_rules=volume_rules,
        simple_mounts=simple_mounts,
        workers=workers,
    )
    return rewriter.rewrite(manifest)


def revert(manifest: Manifest, changelog: ChangeLog) -> Manifest:
    """Undo every applied edit of `changelog` on a copy of `manifest`."""
    out = manifest.copy()
    for record in reversed(changelog.applied()):
        service = out.service(record.service)
        if service is None:
            continue
        if record.field == IMAGE_FIELD:
            service.set_image(record.before)
            continue
        m = _MOUNT_FIELD.match(record.field)
        if m:
            service.set_mount(int(m.group(1)), MountSpec.parse(record.before))
    return out
