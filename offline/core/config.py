# offline/core/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

import yaml

DEFAULT_RESTORE_ROOT = "/offline_volumes"
DEFAULT_TAG_SUFFIX = "offline"


@dataclass(frozen=True)
class VolumeRule:
    """
    Operator policy layered over the generic remap rule:
    a capture identifier containing `match` is restored to `restore_root/target`.
    """

    match: str
    target: str


@dataclass(frozen=True)
class Settings:
    restore_root: str = DEFAULT_RESTORE_ROOT
    project_prefix: Optional[str] = None
    tag_suffix: str = DEFAULT_TAG_SUFFIX
    workers: int = 1
    volume_rules: Tuple[VolumeRule, ...] = field(default_factory=tuple)

    def override(self, **values: object) -> "Settings":
        """Return a copy with every non-None value applied (CLI flags win over env)."""
        given = {k: v for k, v in values.items() if v is not None}
        return replace(self, **given) if given else self


def _env(environ: Mapping[str, str], name: str) -> Optional[str]:
    val = environ.get(name)
    if val is None or not str(val).strip():
        return None
    return str(val).strip()


def validate_restore_root(value: str) -> str:
    root = str(value).strip()
    if not root.startswith("/"):
        raise SystemExit(f"Restore root must be an absolute path, got {value!r}")
    return root.rstrip("/") or "/"


def validate_tag_suffix(value: str) -> str:
    suffix = str(value).strip().lstrip(":")
    if not suffix:
        raise SystemExit("Tag suffix must not be empty")
    return suffix


def validate_workers(value: object) -> int:
    try:
        n = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise SystemExit(f"Worker count must be an integer, got {value!r}") from exc
    if n <= 0:
        raise SystemExit(f"Worker count must be > 0, got {n}")
    return n


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read defaults from the environment:

      OFFLINE_RESTORE_ROOT    absolute restore root (default /offline_volumes)
      OFFLINE_PROJECT_PREFIX  project prefix used when images were tagged
      OFFLINE_TAG_SUFFIX      offline tag marker (default offline)
      OFFLINE_WORKERS         parallel service resolution (default 1)
    """
    env = os.environ if environ is None else environ
    settings = Settings()

    root = _env(env, "OFFLINE_RESTORE_ROOT")
    if root is not None:
        settings = replace(settings, restore_root=validate_restore_root(root))

    prefix = _env(env, "OFFLINE_PROJECT_PREFIX")
    if prefix is not None:
        settings = replace(settings, project_prefix=prefix)

    suffix = _env(env, "OFFLINE_TAG_SUFFIX")
    if suffix is not None:
        settings = replace(settings, tag_suffix=validate_tag_suffix(suffix))

    workers = _env(env, "OFFLINE_WORKERS")
    if workers is not None:
        settings = replace(settings, workers=validate_workers(workers))

    return settings


def load_volume_rules(path: Path) -> Tuple[VolumeRule, ...]:
    """
    Policy file format:

      volume_rules:
        - match: postgresql
          target: db/data
        - match: redis
          target: redis/data
    """
    if not path.exists():
        raise SystemExit(f"Policy file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise SystemExit(f"Failed to parse policy file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise SystemExit(f"Expected a mapping at top-level in {path}, got {type(data)}")

    raw_rules = data.get("volume_rules") or []
    if not isinstance(raw_rules, list):
        raise SystemExit(f"'volume_rules' must be a list in {path}")

    rules = []
    for i, item in enumerate(raw_rules):
        if not isinstance(item, dict):
            raise SystemExit(f"volume_rules[{i}] must be a mapping in {path}")
        match = str(item.get("match") or "").strip()
        target = str(item.get("target") or "").strip().strip("/")
        if not match or not target:
            raise SystemExit(
                f"volume_rules[{i}] needs non-empty 'match' and 'target' in {path}"
            )
        if ".." in target.split("/"):
            raise SystemExit(
                f"volume_rules[{i}] target must stay under the restore root, got {target!r} in {path}"
            )
        rules.append(VolumeRule(match=match, target=target))

    return tuple(rules)
