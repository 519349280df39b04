"""Diagnostic output for pattern sets, glob options and other internals.

Everything here is a no-op unless DEADWOOD_DEBUG is enabled. Output goes to
stderr so it never mixes with machine-readable results on stdout.
"""
from typing import Any, Iterable, Optional
from rich.markup import escape
from rich.pretty import Pretty

from ..config import get_config
from .safe_console import SafeConsole

ROOT_WORKSPACE_NAME = "."

_console: Optional[SafeConsole] = None


def get_debug_console() -> SafeConsole:
    """Get or create the stderr console used for debug output.

    Returns:
        SafeConsole bound to stderr
    """
    global _console
    if _console is None:
        _console = SafeConsole(stderr=True, highlight=False)
    return _console


def is_debug_enabled() -> bool:
    return get_config().debug


def _context(context: str) -> str:
    return f"[dim]{escape(f'[{context}]')}[/dim]"


def debug_log(context: str, message: str) -> None:
    """Print a single debug line prefixed by its scope.

    Args:
        context: Query scope ("." for the root, a workspace path, or "*")
        message: Text to print
    """
    if not is_debug_enabled():
        return
    get_debug_console().print(f"{_context(context)} {escape(message)}")


def debug_log_object(context: str, name: str, obj: Any) -> None:
    """Print a named object (dict, set, dataclass...) pretty-printed.

    Args:
        context: Query scope
        name: Heading printed before the object
        obj: Object to render; a callable is invoked lazily first
    """
    if not is_debug_enabled():
        return
    console = get_debug_console()
    console.print(f"{_context(context)} [bold]{escape(name)}[/bold]")
    console.print(Pretty(obj() if callable(obj) else obj, expand_all=True))


def debug_log_array(context: str, message: str, elements: Iterable[str]) -> None:
    """Print a sorted list of strings, one per line.

    Args:
        context: Query scope
        message: Heading printed before the list
        elements: Strings to print
    """
    if not is_debug_enabled():
        return
    console = get_debug_console()
    items = sorted(elements)
    console.print(f"{_context(context)} [bold]{escape(message)}[/bold] ({len(items)})")
    for item in items:
        console.print(f"  {escape(item)}")
