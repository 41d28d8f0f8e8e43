from __future__ import annotations

import os
import sys
from typing import TextIO


class Style:  # type: ignore
    RESET_ALL = "\033[0m"
    BRIGHT = "\033[1m"
    DIM = "\033[2m"


class Fore:  # type: ignore
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


def use_color(stream: TextIO | None = None) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    stream = stream or sys.stdout
    return bool(getattr(stream, "isatty", lambda: False)())


def color_text(text: str, color: str, *, enabled: bool = True) -> str:
    if not enabled:
        return text
    return f"{color}{text}{Style.RESET_ALL}"
