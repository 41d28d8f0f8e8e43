#!/usr/bin/env python3
from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import List

from offline.catalog.sources import list_engine_images, read_listing_file
from offline.compose.tags.planner import plan_simple_tags
from offline.core.colors import Fore, color_text, use_color
from offline.core.config import settings_from_env, validate_tag_suffix
from offline.core.errors import OfflineError
from offline.manifest.model import parse


def _err(message: str) -> None:
    print(
        color_text(message, Fore.RED, enabled=use_color(sys.stderr)),
        file=sys.stderr,
        flush=True,
    )


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Tag {prefix}_<container>:offline snapshots as <original image>:offline."
    )
    parser.add_argument("project_prefix", help="Prefix used when snapshots were tagged, e.g. dify_test.")
    parser.add_argument("compose_file", help="Compose file holding the original image references.")
    parser.add_argument("--images-file", default=None, help="Listing of available images instead of the engine.")
    parser.add_argument("--tag-suffix", default=None, help="Offline tag marker (default: offline).")
    parser.add_argument("--docker-bin", default="docker", help="Container engine binary.")
    parser.add_argument("--dry-run", action="store_true", help="Only print the planned tags.")
    args = parser.parse_args()

    settings = settings_from_env().override(
        tag_suffix=validate_tag_suffix(args.tag_suffix) if args.tag_suffix else None
    )
    compose_file = Path(args.compose_file)
    if not compose_file.is_file():
        _err(f"[tags] Compose file not found: {compose_file}")
        return 1

    try:
        manifest = parse(compose_file.read_bytes())
        images = (
            read_listing_file(Path(args.images_file))
            if args.images_file
            else list_engine_images(args.docker_bin)
        )
    except OfflineError as e:
        _err(f"[tags] {e}")
        return 1

    plans = plan_simple_tags(args.project_prefix, images, manifest, settings.tag_suffix)
    if not plans:
        _err(f"[tags] No offline images found with prefix: {args.project_prefix}")
        return 1

    failures: List[str] = []
    for plan in plans:
        label = f"{plan.source} (service {plan.service})"
        if plan.target is None:
            print(f"[tags] {label}: skipped, {plan.reason}", file=sys.stderr, flush=True)
            continue
        if plan.duplicate:
            print(f"[tags] {label}: {plan.target} already planned", flush=True)
            continue

        print(f"[tags] {label}: {plan.source} -> {plan.target}", flush=True)
        if args.dry_run:
            continue

        cmd = [args.docker_bin, "tag", plan.source, plan.target]
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except (OSError, subprocess.CalledProcessError) as e:
            failures.append(f"{label}: FAILED ({e})")
            _err(f"[tags] {label}: FAILED, continuing...")

    if failures:
        _err("\n[tags] SUMMARY: some tags failed:")
        for f in failures:
            _err(f"- {f}")
        return 1

    done = sum(1 for p in plans if p.actionable)
    print(f"\n[tags] Result: {done} tag(s) {'planned' if args.dry_run else 'created'}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
