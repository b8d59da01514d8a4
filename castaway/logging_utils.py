"""Logging utilities for castaway simulations.

Console output is colour-coded so engine bookkeeping, reasoning calls and
failures can be told apart while a run scrolls past.
"""

import os
from enum import Enum

from .config import Config


class Color(Enum):
    """ANSI color codes for terminal output."""

    BLUE = "\033[94m"      # Deterministic engine work (ticks, actions)
    YELLOW = "\033[93m"    # Reasoning collaborator calls
    RED = "\033[91m"       # Errors, failures and discarded responses
    GREEN = "\033[92m"     # Completed work (builds, trades)
    CYAN = "\033[96m"      # Info/metadata
    MAGENTA = "\033[95m"   # Trade negotiation

    BOLD = "\033[1m"
    RESET = "\033[0m"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes if colors are enabled.

    Args:
        text: Text to colorize
        color: Color to apply
        bold: Whether to make text bold

    Returns:
        Colorized text if CASTAWAY_NO_COLOR is not set, otherwise plain text
    """
    if os.getenv("CASTAWAY_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def verbose_enabled() -> bool:
    """Return True when the event log should be echoed to the console.

    Either CASTAWAY_VERBOSE or LOG_LEVEL=DEBUG turns the echo on.
    """
    if Config.LOG_LEVEL.upper() == "DEBUG":
        return True
    return os.getenv("CASTAWAY_VERBOSE", "").lower() in {"1", "true", "yes"}


def debug_llm_enabled() -> bool:
    return os.getenv("DEBUG_LLM", "").lower() in {"1", "true", "yes"}


def log_deterministic(message: str) -> None:
    """Log a deterministic operation (blue)."""
    print(colored(message, Color.BLUE))


def log_llm(message: str) -> None:
    """Log a reasoning call (yellow)."""
    print(colored(message, Color.YELLOW))


def log_error(message: str) -> None:
    """Log an error or discarded response (red)."""
    print(colored(message, Color.RED))


def log_success(message: str) -> None:
    """Log a success (green)."""
    print(colored(message, Color.GREEN))


def log_info(message: str) -> None:
    """Log metadata/info (cyan)."""
    print(colored(message, Color.CYAN))


def log_trade(message: str) -> None:
    """Log a negotiation step (magenta)."""
    print(colored(message, Color.MAGENTA))


# Markers for operation types (color-blind accessible)
LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_LLM = "[AI]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"
LOG_TAG_TRADE = "[⇄]"
