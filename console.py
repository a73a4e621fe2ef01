import os
import sys

from colorama import Fore, Style, init

GREEN = Fore.GREEN
CYAN = Fore.CYAN
YELLOW = Fore.YELLOW
RED = Fore.RED


def setup_colour() -> None:
    """
    Hook colorama into stdout/stderr.

    Setting NO_COLOR strips the escape codes instead of printing them.
    """
    if os.environ.get("NO_COLOR"):
        init(strip=True)
    else:
        init()


def paint(text: str, colour: str = "", bright: bool = False) -> str:
    if not colour and not bright:
        return text
    prefix = colour + (Style.BRIGHT if bright else "")
    return f"{prefix}{text}{Style.RESET_ALL}"


def log(msg: str, colour: str = "") -> None:
    """Tiny server logger so I can grep server output easily."""
    print(paint(f"[SERVER] {msg}", colour), flush=True)


def notice(msg: str, colour: str = "") -> None:
    """Client-side status line on stdout."""
    print(paint(msg, colour), flush=True)


def error(msg: str) -> None:
    print(paint(msg, RED), file=sys.stderr, flush=True)
