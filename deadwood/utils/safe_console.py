"""Rich Console that degrades to ASCII on non-UTF-8 streams."""
from typing import Any
from rich.console import Console

from .terminal import supports_unicode, to_ascii


class SafeConsole(Console):
    """Console that swaps Unicode glyphs for ASCII when its stream needs it.

    Capability is checked on every print, since the underlying stream (e.g. a
    captured sys.stderr) can change during the console's lifetime.
    """

    def print(self, *objects: Any, **kwargs) -> None:
        if not supports_unicode(self.file):
            objects = tuple(
                to_ascii(obj, force=True) if isinstance(obj, str) else obj
                for obj in objects
            )
        super().print(*objects, **kwargs)
