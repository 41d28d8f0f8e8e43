# offline/rewrite/report.py
from __future__ import annotations

import json
import sys
from typing import List, TextIO

import yaml

from offline.core.colors import Fore, Style, color_text, use_color
from offline.rewrite.changelog import ChangeLog, ChangeRecord, Outcome

TAG = "[offline]"

_COLORS = {
    Outcome.APPLIED: Fore.GREEN,
    Outcome.UNCHANGED: Style.DIM,
    Outcome.NOT_FOUND: Fore.RED,
    Outcome.SKIPPED: Fore.YELLOW,
}


def format_record(record: ChangeRecord, *, verbose: bool = False) -> List[str]:
    head = f"{TAG} {record.service}.{record.field}: {record.outcome.value}"
    if record.outcome is Outcome.APPLIED:
        line = f"{head} {record.before} -> {record.after}"
    else:
        line = f"{head} {record.before or '-'}"
    detail = record.strategy or ""
    if record.reason:
        detail = f"{detail}, {record.reason}" if detail else record.reason
    if detail:
        line += f" ({detail})"

    lines = [line]
    if verbose:
        for attempt in record.attempts:
            found = ", ".join(attempt.candidates) if attempt.candidates else "no candidates"
            lines.append(f"    {attempt.strategy}: {found}")
    return lines


def print_changelog(
    changelog: ChangeLog,
    *,
    verbose: bool = False,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> None:
    """
    Applied/unchanged records go to stdout; not-found and skipped records
    are warnings and go to stderr.
    """
    out = out or sys.stdout
    err = err or sys.stderr

    for record in changelog:
        warn = record.outcome in (Outcome.NOT_FOUND, Outcome.SKIPPED)
        stream = err if warn else out
        color = use_color(stream)
        for line in format_record(record, verbose=verbose):
            print(color_text(line, _COLORS[record.outcome], enabled=color), file=stream, flush=True)

    counts = changelog.summary()
    summary = ", ".join(f"{n} {name}" for name, n in counts.items())
    print(f"\n{TAG} Result: {summary}.", file=out, flush=True)


def dump_changelog(changelog: ChangeLog, fmt: str = "json") -> str:
    payload = {"summary": changelog.summary(), "changes": changelog.as_dicts()}
    if fmt == "yaml":
        return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False)
    return json.dumps(payload, indent=2)
