# offline/compose/tags/planner.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from offline.core.config import DEFAULT_TAG_SUFFIX
from offline.manifest.model import Manifest
from offline.resolve.imageref import split_name_and_suffix

# compose container names: <project>-<service>-<replica>
_CONTAINER_NAME = re.compile(r"^.*-([^-]+)-[0-9]+$")


def service_from_container(container_name: str, services: Iterable[str] = ()) -> str:
    """
    dify_test-api-1                                  -> api
    docker-plugin-daemon-1  (services: plugin-daemon) -> plugin-daemon
    standalone                                       -> standalone

    Known service names win over the last-word guess, longest first, since
    service names may contain "-" themselves.
    """
    for name in sorted(set(services), key=lambda s: (-len(s), s)):
        if re.match(rf"^(?:.*-)?{re.escape(name)}-[0-9]+$", container_name):
            return name
    m = _CONTAINER_NAME.match(container_name)
    return m.group(1) if m else container_name


@dataclass(frozen=True)
class TagPlan:
    source: str
    service: str
    target: Optional[str] = None
    duplicate: bool = False
    reason: Optional[str] = None

    @property
    def actionable(self) -> bool:
        return self.target is not None and not self.duplicate


def plan_simple_tags(
    project_prefix: str,
    images: Iterable[str],
    manifest: Manifest,
    suffix: str = DEFAULT_TAG_SUFFIX,
) -> List[TagPlan]:
    """
    For every {prefix}_<container>:{suffix} image, tag it again as
    <original repository>:{suffix} so compose files referencing the original
    repository can switch tags only. A target planned twice is kept once.
    """
    marker = f":{suffix}"
    head = f"{project_prefix}_"
    seen: Set[str] = set()
    plans: List[TagPlan] = []

    for image in sorted(set(images)):
        if not (image.startswith(head) and image.endswith(marker)):
            continue

        container = image[len(head) : -len(marker)]
        service_name = service_from_container(container, manifest.services)
        service = manifest.service(service_name)

        if service is None or not service.image:
            plans.append(
                TagPlan(image, service_name, reason="no original image for service")
            )
            continue

        base, _suffix = split_name_and_suffix(service.image)
        target = f"{base}{marker}"
        plans.append(TagPlan(image, service_name, target, duplicate=target in seen))
        seen.add(target)

    return plans
