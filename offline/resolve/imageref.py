# offline/resolve/imageref.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

DEFAULT_TAG = "latest"

DOCKER_HUB_REGISTRIES = (
    "docker.io",
    "registry-1.docker.io",
    "index.docker.io",
)


def split_name_and_suffix(image: str) -> Tuple[str, str]:
    """
    Split image into base name and suffix:
      repo/name:tag   -> (repo/name, :tag)
      repo/name@sha.. -> (repo/name, @sha..)
      repo/name       -> (repo/name, "")
    """
    image = image.strip()

    if "@" in image:
        base, digest = image.split("@", 1)
        return base, f"@{digest}"

    last_slash = image.rfind("/")
    last_colon = image.rfind(":")
    if last_colon > last_slash:
        return image[:last_colon], image[last_colon:]

    return image, ""


def looks_like_registry(component: str) -> bool:
    """
    The first path component is a registry host when it has a dot or a
    port, or is "localhost":
      myregistry.local/foo  -> registry
      localhost:5000/foo    -> registry
      langgenius/dify-api   -> namespace
    """
    return "." in component or ":" in component or component == "localhost"


@dataclass(frozen=True)
class ImageReference:
    raw: str
    registry: Optional[str]
    namespace: Optional[str]
    repository: str
    tag: str = DEFAULT_TAG
    digest: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> "ImageReference":
        ref = str(raw).strip()
        base, suffix = split_name_and_suffix(ref)

        tag = DEFAULT_TAG
        digest = None
        if suffix.startswith("@"):
            digest = suffix[1:]
            # name:tag@sha256:... keeps its tag
            base, tag_suffix = split_name_and_suffix(base)
            if tag_suffix:
                tag = tag_suffix[1:] or DEFAULT_TAG
        elif suffix.startswith(":"):
            tag = suffix[1:] or DEFAULT_TAG

        parts = base.split("/")
        registry = None
        if len(parts) > 1 and looks_like_registry(parts[0]):
            registry = parts[0]
            parts = parts[1:]

        repository = parts[-1]
        namespace = "/".join(parts[:-1]) or None

        return cls(
            raw=ref,
            registry=registry,
            namespace=namespace,
            repository=repository,
            tag=tag,
            digest=digest,
        )

    @property
    def name(self) -> str:
        """Name without registry and tag, e.g. langgenius/dify-api."""
        if self.namespace:
            return f"{self.namespace}/{self.repository}"
        return self.repository

    @property
    def is_docker_hub(self) -> bool:
        return self.registry is None or self.registry in DOCKER_HUB_REGISTRIES

    def with_tag(self, tag: str) -> str:
        """Same registry/namespace/repository, different tag."""
        prefix = f"{self.registry}/" if self.registry else ""
        return f"{prefix}{self.name}:{tag}"

    def __str__(self) -> str:
        return self.raw
