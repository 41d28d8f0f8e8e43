#!/usr/bin/env python3
from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path
from typing import Optional

from offline.bundle.layout import PROJECT_DIR, VOLUMES_DIR, find_compose_file
from offline.catalog.sources import (
    IMAGE_SOURCES,
    IMAGES_BUNDLE,
    IMAGES_ENGINE,
    IMAGES_FILE,
    CatalogSource,
    build_catalog,
)
from offline.core.colors import Fore, color_text, use_color
from offline.core.config import (
    Settings,
    load_volume_rules,
    settings_from_env,
    validate_restore_root,
    validate_tag_suffix,
    validate_workers,
)
from offline.core.errors import OfflineError
from offline.manifest.model import parse, serialize
from offline.rewrite.report import dump_changelog, print_changelog
from offline.rewrite.rewriter import rewrite


def _positive_int(value: str) -> int:
    try:
        return validate_workers(value)
    except SystemExit as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _fail(message: str) -> int:
    print(
        color_text(f"[offline] {message}", Fore.RED, enabled=use_color(sys.stderr)),
        file=sys.stderr,
        flush=True,
    )
    return 1


def default_output(compose_file: Path) -> Path:
    """docker-compose.yaml -> docker-compose.patched.yml"""
    return compose_file.with_name(f"{compose_file.stem}.patched.yml")


def _compose_file(args: argparse.Namespace) -> Path:
    if args.compose_file:
        return Path(args.compose_file)
    if args.bundle:
        found = find_compose_file(Path(args.bundle) / PROJECT_DIR)
        if found is not None:
            return found
        raise SystemExit(f"No compose file found in {Path(args.bundle) / PROJECT_DIR}")
    raise SystemExit("A compose file is required (or --bundle with a project/ directory)")


def _catalog_source(args: argparse.Namespace, settings: Settings) -> CatalogSource:
    images: Optional[str] = args.images
    images_path: Optional[Path] = None

    if args.images_file:
        images = IMAGES_FILE
        images_path = Path(args.images_file)
    elif images is None:
        images = IMAGES_BUNDLE if args.bundle else IMAGES_ENGINE

    if images == IMAGES_BUNDLE:
        if not args.bundle:
            raise SystemExit("--images bundle requires --bundle")
        images_path = Path(args.bundle)

    volumes_root: Optional[Path] = None
    if args.volumes_root:
        volumes_root = Path(args.volumes_root)
    elif args.bundle and (Path(args.bundle) / VOLUMES_DIR).is_dir():
        volumes_root = Path(args.bundle) / VOLUMES_DIR

    return CatalogSource(
        images=images,
        images_path=images_path,
        volumes_root=volumes_root,
        project_prefix=settings.project_prefix,
        suffix=settings.tag_suffix,
        docker_bin=args.docker_bin,
    )


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Rewrite a compose file to use offline images and restored volume data."
    )
    parser.add_argument("compose_file", nargs="?", help="Compose file to patch.")
    parser.add_argument("-p", "--project", default=None, help="Project prefix of the offline image tags.")
    parser.add_argument("-r", "--restore-root", default=None, help="Absolute restore root for volume data (default: /offline_volumes).")
    parser.add_argument("--bundle", default=None, help="Offline bundle root (containers/, volumes/, project/).")
    parser.add_argument("--images", choices=IMAGE_SOURCES, default=None, help="Where to enumerate offline images from.")
    parser.add_argument("--images-file", default=None, help="Listing of available images, one repo:tag per line.")
    parser.add_argument("--volumes-root", default=None, help="Directory of volume captures (default: <bundle>/volumes).")
    parser.add_argument("--tag-suffix", default=None, help="Offline tag marker (default: offline).")
    parser.add_argument("--policy", default=None, help="YAML file with volume_rules layered over the default remap.")
    parser.add_argument("--basename-mounts", action="store_true", help="Move mounts without a capture to <restore-root>/<source name>.")
    parser.add_argument("-o", "--output", default=None, help="Output file (default: <stem>.patched.yml next to the input).")
    parser.add_argument("--dry-run", action="store_true", help="Print the patched compose file instead of writing it.")
    parser.add_argument("--no-backup", action="store_true", help="Do not keep a <file>.bak copy of the input.")
    parser.add_argument("--changelog", default=None, help="Write the change log to this file.")
    parser.add_argument("--format", choices=("json", "yaml"), default="json", help="Change log file format.")
    parser.add_argument("--strict", action="store_true", help="Exit 1 if any reference stays unresolved.")
    parser.add_argument("--workers", type=_positive_int, default=None, help="Resolve services in parallel.")
    parser.add_argument("--docker-bin", default="docker", help="Container engine binary for image listing.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show every strategy attempt.")
    args = parser.parse_args()

    settings = settings_from_env().override(
        restore_root=validate_restore_root(args.restore_root) if args.restore_root else None,
        project_prefix=args.project,
        tag_suffix=validate_tag_suffix(args.tag_suffix) if args.tag_suffix else None,
        workers=args.workers,
        volume_rules=load_volume_rules(Path(args.policy)) if args.policy else None,
    )

    compose_file = _compose_file(args)
    if not compose_file.is_file():
        return _fail(f"Compose file not found: {compose_file}")

    try:
        manifest = parse(compose_file.read_bytes())
        catalog = build_catalog(_catalog_source(args, settings))
    except OfflineError as e:
        return _fail(str(e))

    print(
        f"[offline] {compose_file}: {len(manifest)} services, "
        f"{len(catalog.images())} offline images, {len(catalog.volumes())} volume captures",
        file=sys.stderr if args.dry_run else sys.stdout,
        flush=True,
    )

    patched, changelog = rewrite(
        manifest,
        catalog,
        settings.restore_root,
        settings.project_prefix,
        volume_rules=settings.volume_rules,
        simple_mounts=args.basename_mounts,
        workers=settings.workers,
    )
    text = serialize(patched)

    if args.dry_run:
        print_changelog(changelog, verbose=args.verbose, out=sys.stderr)
        sys.stdout.write(text)
    else:
        if not args.no_backup:
            backup = compose_file.with_name(compose_file.name + ".bak")
            shutil.copy2(compose_file, backup)
        output = Path(args.output) if args.output else default_output(compose_file)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        print_changelog(changelog, verbose=args.verbose)
        print(f"[offline] Patched compose written to: {output}", flush=True)

    if args.changelog:
        Path(args.changelog).write_text(dump_changelog(changelog, args.format), encoding="utf-8")

    if args.strict and changelog.has_unresolved:
        return _fail(f"{len(changelog.unresolved())} reference(s) unresolved (--strict)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
