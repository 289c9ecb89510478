"""Agent hook entry points."""

from k2d.hooks.turn_end import (
    HookInput,
    HookOutput,
    TurnEndProcessor,
    ensure_store_initialized,
    handle_hook,
    parse_hook_input,
    run_turn_end,
)

__all__ = [
    "HookInput",
    "HookOutput",
    "TurnEndProcessor",
    "ensure_store_initialized",
    "handle_hook",
    "parse_hook_input",
    "run_turn_end",
]
