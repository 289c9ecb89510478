"""Utility modules for k2d."""

from k2d.utils.console import get_console, print_error, print_info, print_panel, print_success

__all__ = [
    "get_console",
    "print_error",
    "print_info",
    "print_panel",
    "print_success",
]
