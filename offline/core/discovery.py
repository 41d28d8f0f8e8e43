from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

PACKAGE = "offline"


@dataclass(frozen=True)
class Command:
    """
    A command is a package directory under offline/ that contains __main__.py.

    Example:
      offline/compose/patch/__main__.py -> parts=("compose","patch"), module="offline.compose.patch"
    """

    parts: Tuple[str, ...]
    module: str
    main_path: Path

    @property
    def name(self) -> str:
        return " ".join(self.parts)


def discover_commands(package_dir: Path) -> List[Command]:
    """
    Recursively find all packages under package_dir that contain __main__.py.
    """
    commands: List[Command] = []

    for root, dirnames, filenames in os.walk(package_dir):
        dirnames[:] = [d for d in dirnames if d != "__pycache__"]

        if "__main__.py" not in filenames:
            continue

        root_path = Path(root)
        rel = root_path.relative_to(package_dir)
        if rel.parts == ():
            # offline/__main__.py is the dispatcher, not a command
            continue

        parts = tuple(rel.parts)
        commands.append(
            Command(
                parts=parts,
                module=f"{PACKAGE}." + ".".join(parts),
                main_path=root_path / "__main__.py",
            )
        )

    commands.sort(key=lambda c: c.parts)
    return commands


def resolve_command_module(
    package_dir: Path, argv_parts: List[str]
) -> tuple[str | None, List[str]]:
    """
    Resolve the longest argv prefix that matches a command package.

      ["compose", "patch", "x.yml", "-p", "demo"]
      -> ("offline.compose.patch", ["x.yml", "-p", "demo"])
    """
    for n in range(len(argv_parts), 0, -1):
        if any(p.startswith("-") for p in argv_parts[:n]):
            continue
        candidate_dir = package_dir.joinpath(*argv_parts[:n])
        if candidate_dir.is_dir() and (candidate_dir / "__main__.py").is_file():
            return f"{PACKAGE}." + ".".join(argv_parts[:n]), argv_parts[n:]
    return None, argv_parts
