"""ANSI color codes for terminal output.

All colors use the 256-color palette for better compatibility and consistency.

Usage:
    from sjstemplate.logging.colors import GREEN, RED, RESET

    print(f"{GREEN}Rendered!{RESET}")
"""

# Basic colors
RESET = "\033[0m"

# Primary colors for status indication
GREEN = "\033[38;5;82m"  # Success - bright green
RED = "\033[38;5;196m"  # Failure - bright red
YELLOW = "\033[38;5;226m"  # Warnings - bright yellow
ORANGE = "\033[38;5;208m"  # Script blocks - orange

# Secondary colors for information
LIGHT_BLUE = "\033[38;5;153m"  # Context data - light blue
CYAN = "\033[38;5;51m"  # Info - cyan
MAGENTA = "\033[38;5;201m"  # Template invocations - magenta

__all__ = [
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
