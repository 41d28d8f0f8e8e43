from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import List

from offline.core.colors import Fore, Style, color_text, use_color
from offline.core.discovery import discover_commands, resolve_command_module

DESCRIPTIONS = {
    "bundle verify": "Check an offline bundle layout and list its captures.",
    "compose patch": "Rewrite a compose file to use offline images and restored volumes.",
    "compose tags": "Plan (and apply) simple offline tags for prefixed snapshots.",
}


def print_global_help(package_dir: Path) -> None:
    color = use_color()
    print(color_text("compose-offline", Fore.CYAN + Style.BRIGHT, enabled=color))
    print()
    print(
        color_text(
            "Usage: python -m offline <command> [options]", Fore.GREEN, enabled=color
        )
    )
    print()
    print(color_text("Commands:", Style.BRIGHT, enabled=color))
    for cmd in discover_commands(package_dir):
        print(f"  {cmd.name:<24}{DESCRIPTIONS.get(cmd.name, '-')}")
    print()
    print("Run 'python -m offline <command> --help' for command options.")


def main(argv: List[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    package_dir = Path(__file__).resolve().parents[1]

    if not args or args[0] in ("-h", "--help"):
        print_global_help(package_dir)
        return 0

    module, remaining = resolve_command_module(package_dir, args)
    if not module:
        print(
            color_text(
                f"Error: command '{' '.join(args)}' not found.",
                Fore.RED,
                enabled=use_color(sys.stderr),
            ),
            file=sys.stderr,
        )
        return 1

    try:
        r = subprocess.run([sys.executable, "-m", module, *remaining], check=False)
    except KeyboardInterrupt:
        print()
        print(color_text("Interrupted (Ctrl+C).", Fore.YELLOW), file=sys.stderr)
        return 130
    return int(r.returncode)


def cli() -> None:
    raise SystemExit(main())
