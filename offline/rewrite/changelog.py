# offline/rewrite/changelog.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from offline.resolve.resolver import StrategyAttempt


class Outcome(str, Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not-found"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ChangeRecord:
    """
    One attempted edit. `field` is "image" or "volumes[<index>]";
    before/after are the raw values, identical unless the outcome is applied.
    """

    service: str
    field: str
    before: str
    after: str
    outcome: Outcome
    strategy: Optional[str] = None
    reason: Optional[str] = None
    attempts: Tuple[StrategyAttempt, ...] = ()

    def as_dict(self) -> dict:
        out: dict = {
            "service": self.service,
            "field": self.field,
            "before": self.before,
            "after": self.after,
            "outcome": self.outcome.value,
        }
        if self.strategy:
            out["strategy"] = self.strategy
        if self.reason:
            out["reason"] = self.reason
        if self.attempts:
            out["attempts"] = [a.as_dict() for a in self.attempts]
        return out


@dataclass
class ChangeLog:
    records: List[ChangeRecord] = field(default_factory=list)

    def extend(self, records: "List[ChangeRecord] | Tuple[ChangeRecord, ...]") -> None:
        self.records.extend(records)

    def __iter__(self) -> Iterator[ChangeRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def with_outcome(self, outcome: Outcome) -> List[ChangeRecord]:
        return [r for r in self.records if r.outcome is outcome]

    def applied(self) -> List[ChangeRecord]:
        return self.with_outcome(Outcome.APPLIED)

    def unresolved(self) -> List[ChangeRecord]:
        return self.with_outcome(Outcome.NOT_FOUND)

    def skipped(self) -> List[ChangeRecord]:
        return self.with_outcome(Outcome.SKIPPED)

    def for_service(self, service: str) -> List[ChangeRecord]:
        return [r for r in self.records if r.service == service]

    @property
    def has_unresolved(self) -> bool:
        return any(r.outcome is Outcome.NOT_FOUND for r in self.records)

    def summary(self) -> Dict[str, int]:
        counts = {o.value: 0 for o in Outcome}
        for r in self.records:
            counts[r.outcome.value] += 1
        return counts

    def as_dicts(self) -> List[dict]:
        return [r.as_dict() for r in self.records]
