#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from offline.bundle.layout import inspect_bundle
from offline.core.colors import Fore, color_text, use_color
from offline.core.config import settings_from_env, validate_tag_suffix


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Check an offline bundle layout and list its container snapshots and volume captures."
    )
    parser.add_argument("bundle", nargs="?", default=".", help="Bundle root (default: .)")
    parser.add_argument("-p", "--project", default=None, help="Project prefix used when tagging snapshots.")
    parser.add_argument("--tag-suffix", default=None, help="Offline tag marker (default: offline).")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON.")
    args = parser.parse_args()

    settings = settings_from_env().override(
        project_prefix=args.project,
        tag_suffix=validate_tag_suffix(args.tag_suffix) if args.tag_suffix else None,
    )
    root = Path(args.bundle).resolve()
    report = inspect_bundle(
        root, project_prefix=settings.project_prefix, suffix=settings.tag_suffix
    )

    if args.json:
        print(json.dumps(report.as_dict(), indent=2))
        return 0 if report.ok else 1

    color = use_color()
    print(f"[bundle] {root}")
    print(f"  - Containers: {len(report.snapshots)} snapshots")
    print(f"  - Volumes: {len(report.volumes)} captures")
    print(f"  - Compose file: {report.compose_file or 'not found'}")

    print("\n[bundle] Container snapshots:")
    for name, image in zip(report.snapshots, report.images):
        print(f"  - {name} -> {image}")

    print("\n[bundle] Volume captures:")
    for name in report.volumes:
        print(f"  - {name}")

    if not report.ok:
        print(
            color_text(
                f"\n[bundle] Missing directories: {', '.join(report.missing)}",
                Fore.RED,
                enabled=use_color(sys.stderr),
            ),
            file=sys.stderr,
        )
        return 1

    print(color_text("\n[bundle] Verification complete.", Fore.GREEN, enabled=color))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
