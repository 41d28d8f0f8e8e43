# offline/resolve/resolver.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from offline.catalog.model import Catalog, CatalogEntry
from offline.resolve.imageref import ImageReference
from offline.resolve.strategies import STRATEGIES, ResolutionQuery, Strategy

REASON_NO_IMAGE = "no image reference"
REASON_EMPTY_CATALOG = "no catalog entries"
REASON_NO_MATCH = "no strategy matched"


@dataclass(frozen=True)
class StrategyAttempt:
    strategy: str
    candidates: Tuple[str, ...] = ()

    @property
    def matched(self) -> bool:
        return bool(self.candidates)

    def as_dict(self) -> dict:
        return {"strategy": self.strategy, "candidates": list(self.candidates)}


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of resolving one service image. `entry` is None for NotFound,
    in which case `reason` says why. `attempts` lists every strategy tried,
    in order, up to and including the one that fired.
    """

    service_name: str
    raw_image: str
    entry: Optional[CatalogEntry] = None
    strategy: Optional[str] = None
    reason: Optional[str] = None
    attempts: Tuple[StrategyAttempt, ...] = field(default_factory=tuple)

    @property
    def found(self) -> bool:
        return self.entry is not None

    @property
    def ambiguous(self) -> bool:
        return bool(self.attempts) and len(self.attempts[-1].candidates) > 1


class ReferenceResolver:
    """
    Map a service's image reference to an offline catalog image by trying
    the strategies in priority order. The first strategy with candidates
    wins; several candidates are broken by lexicographic order.
    """

    def __init__(
        self,
        catalog: Catalog,
        project_prefix: Optional[str] = None,
        strategies: Sequence[Tuple[str, Strategy]] = STRATEGIES,
    ) -> None:
        self.catalog = catalog
        self.project_prefix = project_prefix or None
        self.strategies = tuple(strategies)

    def resolve(self, service_name: str, raw_image: str) -> Resolution:
        raw = (raw_image or "").strip()
        if not raw:
            return Resolution(service_name, raw, reason=REASON_NO_IMAGE)

        if not self.catalog.images():
            return Resolution(service_name, raw, reason=REASON_EMPTY_CATALOG)

        query = ResolutionQuery(
            service_name=service_name,
            image=ImageReference.parse(raw),
            project_prefix=self.project_prefix,
        )

        attempts: List[StrategyAttempt] = []
        for name, strategy in self.strategies:
            candidates = tuple(sorted(set(strategy(query, self.catalog))))
            attempts.append(StrategyAttempt(name, candidates))
            if candidates:
                return Resolution(
                    service_name,
                    raw,
                    entry=self.catalog.image(candidates[0]),
                    strategy=name,
                    attempts=tuple(attempts),
                )

        return Resolution(
            service_name, raw, reason=REASON_NO_MATCH, attempts=tuple(attempts)
        )


def resolve(
    service_name: str,
    raw_image: str,
    catalog: Catalog,
    project_prefix: Optional[str] = None,
) -> Resolution:
    return ReferenceResolver(catalog, project_prefix).resolve(service_name, raw_image)
