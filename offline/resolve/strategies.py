# offline/resolve/strategies.py
"""
Resolution strategies: pure functions `(query, catalog) -> candidate identifiers`.

Each one encodes a naming convention seen in captured bundles. They are tried
in order by the resolver; adding a convention means adding a function here and
listing it in STRATEGIES, without touching the existing ones.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from offline.catalog.model import Catalog, CatalogEntry
from offline.core.naming import neutralize
from offline.resolve.imageref import ImageReference


@dataclass(frozen=True)
class ResolutionQuery:
    service_name: str
    image: ImageReference
    project_prefix: Optional[str] = None


Strategy = Callable[[ResolutionQuery, Catalog], List[str]]


def _offline_images(catalog: Catalog) -> List[CatalogEntry]:
    return [e for e in catalog.images() if e.identifier.endswith(catalog.marker)]


def prefixed_service_match(query: ResolutionQuery, catalog: Catalog) -> List[str]:
    """{prefix}_*{service}*:offline"""
    if not query.project_prefix or not query.service_name:
        return []
    pattern = re.compile(
        rf"^{re.escape(query.project_prefix)}_.*{re.escape(query.service_name)}.*$"
    )
    return [e.identifier for e in _offline_images(catalog) if pattern.match(e.repository)]


def bare_service_match(query: ResolutionQuery, catalog: Catalog) -> List[str]:
    """*{service}*:offline, whatever the prefix."""
    if not query.service_name:
        return []
    return [
        e.identifier
        for e in _offline_images(catalog)
        if query.service_name in e.repository
    ]


def sanitized_original_match(query: ResolutionQuery, catalog: Catalog) -> List[str]:
    """
    postgres:15-alpine       -> postgres:offline
    langgenius/dify-api:1.4  -> dify_api:offline or {prefix}_dify_api:offline
    """
    sanitized = neutralize(query.image.repository)
    if not sanitized:
        return []
    wanted = {f"{sanitized}{catalog.marker}"}
    if query.project_prefix:
        wanted.add(f"{query.project_prefix}_{sanitized}{catalog.marker}")
    return [e.identifier for e in _offline_images(catalog) if e.identifier in wanted]


def base_name_fuzzy_match(query: ResolutionQuery, catalog: Catalog) -> List[str]:
    """Any offline image whose normalized repository contains the normalized base name."""
    base = neutralize(query.image.repository)
    if not base:
        return []
    return [
        e.identifier
        for e in _offline_images(catalog)
        if base in neutralize(e.repository)
    ]


STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("prefixed-service", prefixed_service_match),
    ("bare-service", bare_service_match),
    ("sanitized-original", sanitized_original_match),
    ("base-name-fuzzy", base_name_fuzzy_match),
)
