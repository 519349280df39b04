"""Lightweight function timing for analysis passes.

Wrap hot functions with ``timerify``; durations are only recorded while
DEADWOOD_PERFORMANCE is enabled, so wrapped functions cost one flag check
otherwise.
"""
import functools
import statistics
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional
from rich.table import Table

from ..config import get_config


class Performance:
    """Registry of recorded durations, keyed by function name."""

    def __init__(self, enabled: Optional[bool] = None):
        """Initialize the registry.

        Args:
            enabled: Force recording on or off. None defers to Config.performance
                     at call time.
        """
        self._enabled = enabled
        self.entries: Dict[str, List[float]] = defaultdict(list)

    @property
    def enabled(self) -> bool:
        if self._enabled is not None:
            return self._enabled
        return get_config().performance

    def timerify(self, fn: Callable, name: Optional[str] = None) -> Callable:
        """Wrap a function so each call's duration is recorded.

        Args:
            fn: Function to wrap
            name: Label for the summary table (defaults to fn.__name__)

        Returns:
            Wrapped function with the same signature
        """
        label = name or getattr(fn, '__name__', repr(fn))

        @functools.wraps(fn)
        def timed(*args, **kwargs):
            if not self.enabled:
                return fn(*args, **kwargs)
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                self.entries[label].append((time.perf_counter() - start) * 1000)

        return timed

    def get_table(self) -> Table:
        """Build a summary table of all recorded timings.

        Returns:
            Rich Table with calls, total, mean and median per function (ms)
        """
        table = Table(title="Timings", show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Calls", justify="right")
        table.add_column("Total (ms)", justify="right")
        table.add_column("Mean (ms)", justify="right")
        table.add_column("Median (ms)", justify="right")

        for label in sorted(self.entries):
            durations = self.entries[label]
            table.add_row(
                label,
                str(len(durations)),
                f"{sum(durations):.2f}",
                f"{statistics.mean(durations):.2f}",
                f"{statistics.median(durations):.2f}",
            )
        return table

    def reset(self) -> None:
        self.entries.clear()


# Shared registry for the whole process
performance = Performance()


def timerify(fn: Callable, name: Optional[str] = None) -> Callable:
    """Wrap fn with the shared performance registry."""
    return performance.timerify(fn, name)
